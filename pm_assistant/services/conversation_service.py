"""Tool-calling conversation loop.

One :meth:`ConversationService.chat` call moves through the phases of
:class:`~pm_assistant.models.conversation.ConversationPhase`::

    COMPOSING -> AWAITING_MODEL -> (TOOLS_REQUESTED -> EXECUTING_TOOLS -> AWAITING_MODEL)* -> DONE | ABORTED

COMPOSING settles the community, optionally retrieves supporting documents
and builds the first user turn.  Each model reply either answers (DONE) or
requests function calls, which run concurrently and are fed back as one
tool-result turn.  The number of model calls is capped; a reply that still
requests functions at the cap ends in ABORTED and raises
:class:`~pm_assistant.utils.errors.AbortedError`.

Model failures propagate as :class:`~pm_assistant.utils.errors.ModelError`.
Function failures never propagate; the registry returns them as error
payloads and the model decides how to answer.
"""

from __future__ import annotations

import asyncio
import json
import re

import structlog

from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.models.community import CommunityResolution, ResolutionConfidence
from pm_assistant.models.conversation import (
    ChatOptions,
    ChatResult,
    ChatSources,
    ChatUsage,
    ContentBlock,
    ConversationPhase,
    ConversationTurn,
    CostBreakdown,
    FunctionCallRecord,
    ModelTurn,
    SourceDocument,
)
from pm_assistant.models.documents import DocumentScope
from pm_assistant.models.rag import RetrievalScope, RetrievedDocument
from pm_assistant.services.community_resolver import CommunityResolver
from pm_assistant.services.data_functions.registry import FunctionRegistry
from pm_assistant.services.retrieval_service import RetrievalService
from pm_assistant.utils.errors import AbortedError, ModelError, PMAssistantError

logger = structlog.get_logger(logger_name=__name__)

SIMPLE_QUERY_PATTERNS: tuple[str, ...] = (
    "what is the address",
    "what's the address",
    "address of",
    "where is",
    "location of",
    "what are the management fees",
    "what's the management fee",
    "management fee for",
    "what is the ytd",
    "what's the ytd",
    "ytd income",
    "ytd expenses",
    "ytd total",
    "year to date",
    "financial summary",
    "collection rate",
    "board members",
    "who are the board",
    "billing information",
    "contract dates",
    "fee structure",
    "commitment fees",
    "stakeholders",
    "invoices",
    "invoice for",
)

_CODE_PATTERN = re.compile(r"\b([A-Z]{2,5})\b")
_COMMON_WORDS = frozenset(
    {
        "THE", "FOR", "AND", "OR", "BUT", "WITH", "FROM", "THAT", "THIS", "WHEN",
        "WHERE", "WHAT", "WHICH", "WHO", "HOW", "WHY", "IS", "ARE", "WAS", "WERE",
        "BE", "BEEN", "HAVE", "HAS", "HAD", "DO", "DOES", "DID", "WILL", "WOULD",
        "COULD", "SHOULD", "MAY", "MIGHT", "CAN", "MUST", "AN", "A", "TO", "OF",
        "IN", "ON", "AT", "BY", "ABOUT",
        # domain acronyms that are never property codes
        "HOA", "YTD", "PDF", "CCR", "CCRS",
    }
)

_SYSTEM_PROMPT = (
    "You are the assistant of a property management company. You answer staff "
    "questions about the communities the company manages, using the database "
    "functions provided and any supporting documents included in the question. "
    "Be concise and state which source each fact came from."
)

_NO_COMMUNITY_GUIDANCE = (
    "No specific community has been selected. If the question is about a specific "
    "community, identify it from the question or ask the user to select one."
)


def extract_community_codes(message: str) -> list[str]:
    """Return uppercase 2-5 letter tokens that may be property codes, in order."""
    codes = (m.group(1) for m in _CODE_PATTERN.finditer(message or ""))
    return list(dict.fromkeys(c for c in codes if c not in _COMMON_WORDS))


def _key_argument(arguments: dict) -> str | None:
    value = arguments.get("communityId")
    return str(value) if value is not None else None


def is_simple_database_query(message: str) -> bool:
    """Return ``True`` if the question is a plain structured lookup."""
    lowered = (message or "").lower()
    return any(pattern in lowered for pattern in SIMPLE_QUERY_PATTERNS)


def _community_guidance(community_id: str | None) -> str:
    if not community_id:
        return _NO_COMMUNITY_GUIDANCE
    return (
        "The user has selected or is asking about a specific community. Use this "
        f"community id for all database function calls: **{community_id}**\n\n"
        "When calling database functions (get_management_fees, get_invoices, "
        f'get_board_members, ...), ALWAYS pass communityId: "{community_id}"'
    )


def _id_instruction(community_id: str | None) -> str:
    if community_id:
        return f'**ALWAYS use communityId: "{community_id}" when calling database functions**'
    return "If a community is mentioned, identify it or ask the user to select one"


def build_not_found_prompt(message: str, code: str) -> str:
    return (
        "IMPORTANT: The user asked about a community that does not exist in the database. "
        f'Politely tell them that the community "{code}" was not found and ask them to '
        "verify the community name or code, or select a community from the list.\n\n"
        f"User Question: {message}\n\n"
        "Respond by informing the user that the community was not found in the database."
    )


def build_document_prompt(message: str, community_id: str | None, document_context: str) -> str:
    example_id = community_id or "COMMUNITY_ID"
    return (
        "**COMMUNITY CONTEXT (IMPORTANT):**\n"
        f"{_community_guidance(community_id)}\n\n"
        "**DATA SOURCE PRIORITY (CRITICAL):**\n"
        "1. **Database function results are the PRIMARY source of truth.** Always call the "
        "database functions first for structured data (management fees, invoices, board "
        "members, ...).\n"
        "2. **Documents are SUPPORTING sources.** Use them to supplement database data or to "
        'answer questions that need document content (e.g. "what do the bylaws say about...").\n\n'
        "**HANDLING MULTIPLE DOCUMENTS:**\n"
        "- For questions about a specific period, use the document matching that period.\n"
        "- For current or general questions, prefer the most recent document.\n"
        "- When documents conflict with the database, the database wins; mention the discrepancy.\n"
        "- State which document each piece of information came from.\n\n"
        "**EXAMPLES:**\n"
        f'- "What are the management fees?" -> get_management_fees(communityId: "{example_id}")\n'
        f'- "Show me the November invoice" -> get_invoices(communityId: "{example_id}"), then '
        "the matching invoice document if needed\n"
        '- "What do the bylaws say about annual meetings?" -> search the documents\n'
        f'- "Who are the board members?" -> get_board_members(communityId: "{example_id}")\n\n'
        "**DOCUMENTS PROVIDED:**\n"
        f"{document_context}\n\n"
        f"**User Question:** {message}\n\n"
        "**Instructions:**\n"
        "- For structured data questions, ALWAYS call the appropriate database function first\n"
        f"- {_id_instruction(community_id)}\n"
        "- Use documents to supplement database data or answer document questions\n"
        "- Database data is authoritative; documents provide context and history"
    )


def build_database_prompt(message: str, community_id: str | None) -> str:
    return (
        "**COMMUNITY CONTEXT (IMPORTANT):**\n"
        f"{_community_guidance(community_id)}\n\n"
        "**DATA SOURCE PRIORITY:**\n"
        "- **Database function results are the PRIMARY source of truth** for structured data\n"
        "- Always use database functions for management fees, invoices, board members, "
        "billing information, stakeholders and financials\n\n"
        f"**User Question:** {message}\n\n"
        "**Instructions:**\n"
        "- For structured data questions, ALWAYS call the appropriate database function first\n"
        f"- {_id_instruction(community_id)}\n"
        "- Answer the question using database functions where appropriate."
    )


class ConversationService:
    """Answers one question with retrieval and function calling.

    Parameters
    ----------
    llm_provider:
        Model with function calling.
    resolver:
        Detects the community a question refers to.
    retrieval:
        Scoped document search; failures are logged and the chat continues
        without documents.
    registry:
        Executes the functions the model requests.
    max_iterations:
        Cap on model calls per chat.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        resolver: CommunityResolver,
        retrieval: RetrievalService,
        registry: FunctionRegistry,
        max_iterations: int = 5,
        max_tokens: int = 1024,
        retrieval_limit: int = 5,
        input_cost_per_million: float = 3.0,
        output_cost_per_million: float = 15.0,
    ) -> None:
        self._llm = llm_provider
        self._resolver = resolver
        self._retrieval = retrieval
        self._registry = registry
        self._max_iterations = max_iterations
        self._max_tokens = max_tokens
        self._retrieval_limit = retrieval_limit
        self._input_rate = input_cost_per_million
        self._output_rate = output_cost_per_million

    async def chat(
        self,
        message: str,
        history: list[ConversationTurn] | None = None,
        options: ChatOptions | None = None,
    ) -> ChatResult:
        """Answer *message* given prior *history*.

        Raises
        ------
        ModelError
            When a model call fails (classified as auth, rate limit or
            generic).
        AbortedError
            When the model still requests functions at the iteration cap.
        """
        options = options or ChatOptions()
        tools = self._registry.definitions()

        phase = ConversationPhase.COMPOSING
        turns: list[ConversationTurn] = []
        documents: list[RetrievedDocument] = []
        function_calls: list[FunctionCallRecord] = []
        reply: ModelTurn | None = None
        calls = 0
        input_tokens = 0
        output_tokens = 0

        while phase not in (ConversationPhase.DONE, ConversationPhase.ABORTED):
            if phase is ConversationPhase.COMPOSING:
                user_prompt, documents = await self._compose(message, options)
                turns = [*(history or []), ConversationTurn(role="user", content=user_prompt)]
                phase = ConversationPhase.AWAITING_MODEL

            elif phase is ConversationPhase.AWAITING_MODEL:
                reply = await self._llm.converse(
                    system_prompt=_SYSTEM_PROMPT,
                    turns=turns,
                    tools=tools,
                    max_tokens=self._max_tokens,
                )
                calls += 1
                input_tokens += reply.usage.input_tokens
                output_tokens += reply.usage.output_tokens
                if not reply.wants_tools:
                    phase = ConversationPhase.DONE
                elif calls >= self._max_iterations:
                    phase = ConversationPhase.ABORTED
                else:
                    phase = ConversationPhase.TOOLS_REQUESTED

            elif phase is ConversationPhase.TOOLS_REQUESTED:
                logger.info(
                    "functions_requested",
                    iteration=calls,
                    functions=[c.name for c in reply.tool_calls],
                )
                blocks = [ContentBlock(type="text", text=reply.text)] if reply.text else []
                blocks.extend(ContentBlock(type="tool_use", tool_call=c) for c in reply.tool_calls)
                turns.append(ConversationTurn(role="assistant", content=blocks))
                function_calls.extend(
                    FunctionCallRecord(name=c.name, community_id=_key_argument(c.arguments))
                    for c in reply.tool_calls
                )
                phase = ConversationPhase.EXECUTING_TOOLS

            elif phase is ConversationPhase.EXECUTING_TOOLS:
                results = await asyncio.gather(
                    *(self._registry.execute(c.name, c.arguments) for c in reply.tool_calls)
                )
                turns.append(
                    ConversationTurn(
                        role="user",
                        content=[
                            ContentBlock(
                                type="tool_result",
                                tool_use_id=c.call_id,
                                content=json.dumps(result, default=str),
                            )
                            for c, result in zip(reply.tool_calls, results)
                        ],
                    )
                )
                phase = ConversationPhase.AWAITING_MODEL

        if phase is ConversationPhase.ABORTED:
            logger.error("chat_aborted", iterations=calls, message=message[:100])
            raise AbortedError(
                message=f"No final answer after {calls} model calls",
                provider_name=self._llm.get_provider_name(),
            )

        if reply is None or not reply.text:
            raise ModelError(
                message="Model returned no answer",
                provider_name=self._llm.get_provider_name(),
            )

        usage = self._usage(input_tokens, output_tokens, calls)
        logger.info(
            "chat_answered",
            message_length=len(message),
            response_length=len(reply.text),
            iterations=calls,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return ChatResult(
            response=reply.text,
            model=reply.model or self._llm.get_model_name(),
            sources=ChatSources(
                documents=self._document_sources(documents),
                database_functions=self._dedupe_calls(function_calls),
            ),
            usage=usage,
        )

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def _compose(
        self,
        message: str,
        options: ChatOptions,
    ) -> tuple[str, list[RetrievedDocument]]:
        """Settle the community, retrieve documents and build the user turn."""
        explicit = options.community_id is not None
        resolution: CommunityResolution | None = None
        if explicit:
            community_id = options.community_id
        else:
            resolution = await self._resolver.resolve_community(message)
            community_id = resolution.resolved_community_id
            logger.info(
                "community_detected",
                community_id=community_id,
                confidence=resolution.confidence.value,
                method=resolution.method.value,
                matched_name=resolution.matched_name,
            )

        codes = extract_community_codes(message)
        detected = resolution is not None and resolution.confidence is not ResolutionConfidence.NONE
        community_specific = not explicit and (detected or bool(codes))

        not_found_code: str | None = None
        if community_specific:
            exists = bool(community_id) and detected and await self._resolver.community_exists(community_id)
            if not exists:
                community_id = None
                if codes:
                    not_found_code = codes[0]

        if not_found_code is not None:
            logger.warning("community_not_found", codes=codes, message=message[:50])
            return build_not_found_prompt(message, not_found_code), []

        documents: list[RetrievedDocument] = []
        wants_documents = self._retrieval.is_document_query(message) or not is_simple_database_query(message)
        if options.use_rag and wants_documents:
            if community_id:
                scope = RetrievalScope.community(community_id)
            elif not community_specific:
                scope = RetrievalScope.for_folder_type(DocumentScope.COMMUNITY.value)
            else:
                scope = None
            if scope is not None:
                documents = await self._retrieve(message, scope)

        if documents:
            context = self._retrieval.format_documents_as_context(documents)
            return build_document_prompt(message, community_id, context), documents
        return build_database_prompt(message, community_id), documents

    async def _retrieve(self, message: str, scope: RetrievalScope) -> list[RetrievedDocument]:
        try:
            ranked = await self._retrieval.retrieve_many(message, [scope], limit=self._retrieval_limit)
        except PMAssistantError as exc:
            logger.warning("retrieval_failed_continuing", error=str(exc))
            return []

        logger.info(
            "documents_retrieved",
            scope=scope.kind.value,
            community_id=scope.community_id,
            documents=len(ranked),
        )
        return ranked

    # ------------------------------------------------------------------
    # Provenance and usage
    # ------------------------------------------------------------------

    @staticmethod
    def _document_sources(documents: list[RetrievedDocument]) -> list[SourceDocument]:
        return [
            SourceDocument(
                display_name=d.source.display_name,
                document_id=d.source.document_id,
                folder_type=d.source.folder_type or DocumentScope.COMMUNITY.value,
                community_id=d.source.community_id,
            )
            for d in documents
        ]

    @staticmethod
    def _dedupe_calls(calls: list[FunctionCallRecord]) -> list[FunctionCallRecord]:
        seen: set[tuple[str, str | None]] = set()
        unique: list[FunctionCallRecord] = []
        for call in calls:
            key = (call.name, call.community_id)
            if key not in seen:
                seen.add(key)
                unique.append(call)
        return unique

    def _usage(self, input_tokens: int, output_tokens: int, iterations: int) -> ChatUsage:
        input_cost = input_tokens / 1_000_000 * self._input_rate
        output_cost = output_tokens / 1_000_000 * self._output_rate
        return ChatUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost=CostBreakdown(input=input_cost, output=output_cost, total=input_cost + output_cost),
            iterations=iterations,
        )
