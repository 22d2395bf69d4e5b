"""
Execution Engine for Convoflow.

Runs one incoming message through a compiled configuration:

    1. Input moderation      -> refusal, stop
    2. Knowledge retrieval   (failure degrades to empty context)
    3. Prompt assembly       root -> persona -> knowledge
    4. Routing evaluation    -> fallback, stop (no model call)
    5. Model call            (bounded by timeout)
    6. Output moderation     -> apology instead of raw output

Only stages 2 and 5 wait on external I/O; moderation calls are
bounded as well. The engine holds no per-tenant state: the compiled
configuration is passed in by the caller, captured once.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from convoflow.errors import ExecutionError
from convoflow.providers.llm import LLMConfig, Message
from convoflow.providers.moderation import ModerationResult

from .context import ExecutionContext
from .prompts import DEFAULT_HISTORY_WINDOW, build_messages, build_system_prompt, knowledge_context
from .routing import ROUTE_DEFAULT, evaluate_routing

if TYPE_CHECKING:
    from convoflow.compiler.models import CompiledConfiguration, ModerationPolicy
    from convoflow.providers.knowledge import KnowledgeConnector
    from convoflow.providers.llm import LLMProvider
    from convoflow.providers.moderation import ModerationProvider

logger = logging.getLogger(__name__)

INPUT_REFUSAL = "I can't assist with that request. Please try rephrasing your question."
OUTPUT_APOLOGY = (
    "I apologize, but I can't provide that response. Let me try to help you differently."
)
NO_FALLBACK_MESSAGE = "I'm not sure how to help with that."

OUTPUT_MODERATION_REASON = "output_moderation"
CUSTOM_FILTER_REASON = "custom_filter"

MODE_AUTOMATED = "automated"
MODE_OPERATOR_ASSIST = "operator_assist"


@dataclass
class ExecutionResult:
    """
    Result of executing a message.

    Attributes:
        response: Text for the end user (None only in operator-assist mode)
        metadata: knowledgeUsed, route, tenantId (+ runtime stamps)
        flagged: Moderation short-circuited the request
        reason: Moderation reason when flagged
        should_fallback: Routing fell back; no model call was made
        escalation: Fallback escalation descriptor
        mode: "automated" or "operator_assist"
        suggestion: Operator-facing suggestion in operator-assist mode
    """

    response: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    flagged: bool = False
    reason: str | None = None
    should_fallback: bool = False
    escalation: dict[str, Any] | None = None
    mode: str = MODE_AUTOMATED
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "response": self.response,
            "metadata": dict(self.metadata),
            "mode": self.mode,
        }
        if self.flagged:
            payload["flagged"] = True
            payload["reason"] = self.reason
        if self.should_fallback:
            payload["shouldFallback"] = True
            payload["escalation"] = self.escalation
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        return payload


class ExecutionEngine:
    """
    Stateless executor of compiled configurations.

    Example:
        engine = ExecutionEngine(llm=OpenAILLMProvider(api_key=...),
                                 moderation=OpenAIModerationProvider(api_key=...),
                                 knowledge=HTTPKnowledgeConnector(base_url=...))
        result = await engine.execute(config, "Hello", history=[])
    """

    def __init__(
        self,
        llm: "LLMProvider",
        moderation: "ModerationProvider | None" = None,
        knowledge: "KnowledgeConnector | None" = None,
        *,
        llm_config: LLMConfig | None = None,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        model_timeout: float = 30.0,
        knowledge_timeout: float = 10.0,
        moderation_timeout: float = 5.0,
    ):
        self._llm = llm
        self._moderation = moderation
        self._knowledge = knowledge
        self._llm_config = llm_config or LLMConfig()
        self._history_window = history_window
        self._model_timeout = model_timeout
        self._knowledge_timeout = knowledge_timeout
        self._moderation_timeout = moderation_timeout

    async def execute(
        self,
        config: "CompiledConfiguration",
        user_message: str,
        chat_history: Sequence[Message | Mapping[str, Any]] = (),
        context: ExecutionContext | Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """
        Run the request path for one message.

        Raises:
            ExecutionError: Model provider failed, timed out or returned nothing
        """
        if not isinstance(context, ExecutionContext):
            context = ExecutionContext.from_mapping(context, tenant_id=config.tenant_id)
        tenant_id = config.tenant_id
        policy = config.prompts.moderation
        sources = config.knowledge.sources

        def metadata(route: str) -> dict[str, Any]:
            return {"knowledgeUsed": bool(sources), "route": route, "tenantId": tenant_id}

        # 1. Input moderation
        if policy.enabled:
            verdict = await self._moderate(user_message, policy, context, stage="input_moderation")
            if verdict.flagged:
                logger.info(
                    f"[engine] Input flagged | tenant={tenant_id} | reason={verdict.reason}"
                )
                return ExecutionResult(
                    response=INPUT_REFUSAL,
                    flagged=True,
                    reason=verdict.reason,
                    metadata=metadata(ROUTE_DEFAULT),
                )

        # 2. Knowledge retrieval
        knowledge = ""
        if sources:
            knowledge = await self._retrieve(user_message, config, context)

        # 3. Prompt assembly
        system_prompt = build_system_prompt(config.prompts, knowledge)

        # 4. Routing
        route = evaluate_routing(user_message, config.routing)
        context.route = route
        if route.should_fallback:
            fallback = config.routing.fallback
            logger.info(f"[engine] Routing fell back | tenant={tenant_id}")
            return ExecutionResult(
                response=fallback.message if fallback else NO_FALLBACK_MESSAGE,
                should_fallback=True,
                escalation=(
                    fallback.escalation.model_dump(mode="json", by_alias=True)
                    if fallback
                    else None
                ),
                metadata=metadata(route.type),
            )

        # 5. Model call
        messages = build_messages(
            system_prompt, chat_history, user_message, history_window=self._history_window
        )
        response = await self._complete(messages, tenant_id, context)

        # 6. Output moderation
        if policy.enabled:
            verdict = await self._moderate(response, policy, context, stage="output_moderation")
            if verdict.flagged:
                logger.info(
                    f"[engine] Output flagged | tenant={tenant_id} | reason={verdict.reason}"
                )
                return ExecutionResult(
                    response=OUTPUT_APOLOGY,
                    flagged=True,
                    reason=OUTPUT_MODERATION_REASON,
                    metadata=metadata(route.type),
                )

        return ExecutionResult(response=response, metadata=metadata(route.type))

    # ==================== Stages ====================

    async def _moderate(
        self,
        text: str,
        policy: "ModerationPolicy",
        context: ExecutionContext,
        stage: str,
    ) -> ModerationResult:
        """Custom filters first, then the provider. Provider failures fail open."""
        started = time.perf_counter()
        try:
            lowered = text.lower()
            for term in policy.custom_filters:
                if term and term.lower() in lowered:
                    return ModerationResult(flagged=True, reason=CUSTOM_FILTER_REASON)

            if not policy.use_provider_moderation or self._moderation is None:
                return ModerationResult.clean()

            try:
                return await asyncio.wait_for(
                    self._moderation.classify(text), timeout=self._moderation_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"[engine] Moderation timed out, failing open | "
                    f"tenant={context.tenant_id} | stage={stage}"
                )
            except Exception as e:
                logger.warning(
                    f"[engine] Moderation failed, failing open | "
                    f"tenant={context.tenant_id} | stage={stage} | error={e}"
                )
            return ModerationResult.clean()
        finally:
            context.record_timing(stage, (time.perf_counter() - started) * 1000)

    async def _retrieve(
        self,
        query: str,
        config: "CompiledConfiguration",
        context: ExecutionContext,
    ) -> str:
        """Query bound sources. Any failure degrades to an empty context."""
        if self._knowledge is None:
            logger.warning(
                f"[engine] Knowledge sources bound but no connector configured | "
                f"tenant={config.tenant_id}"
            )
            return ""

        started = time.perf_counter()
        try:
            chunks = await asyncio.wait_for(
                self._knowledge.get_knowledge(query, list(config.knowledge.sources), config.tenant_id),
                timeout=self._knowledge_timeout,
            )
            return knowledge_context(chunks)
        except asyncio.TimeoutError:
            logger.warning(f"[engine] Knowledge retrieval timed out | tenant={config.tenant_id}")
        except Exception as e:
            logger.warning(
                f"[engine] Knowledge retrieval failed | tenant={config.tenant_id} | error={e}"
            )
        finally:
            context.record_timing("knowledge", (time.perf_counter() - started) * 1000)
        return ""

    async def _complete(
        self,
        messages: list[Message],
        tenant_id: str | None,
        context: ExecutionContext,
    ) -> str:
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._llm.complete(messages, self._llm_config),
                timeout=self._model_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExecutionError(
                f"Model call timed out after {self._model_timeout:.0f}s",
                tenant_id=tenant_id,
                retryable=True,
            ) from e
        except Exception as e:
            logger.error(f"[engine] Model call failed | tenant={tenant_id}", exc_info=True)
            raise ExecutionError(
                f"Model provider error: {e}",
                tenant_id=tenant_id,
                retryable=True,
            ) from e
        finally:
            context.record_timing("model", (time.perf_counter() - started) * 1000)

        content = response.content if hasattr(response, "content") else str(response or "")
        if not content or not content.strip():
            raise ExecutionError(
                "Model provider returned an empty response",
                tenant_id=tenant_id,
                retryable=True,
            )
        logger.debug(
            f"[engine] Model replied | tenant={tenant_id} | "
            f"provider={getattr(response, 'provider', '')} | "
            f"tokens={getattr(response, 'input_tokens', 0)}+{getattr(response, 'output_tokens', 0)}"
        )
        return content
