"""Message Orchestrator - routes chat messages to the policy engine or the RAG fallback"""
from typing import Optional
import logging

from autoheal.agents.alert_parser import ParserEngine
from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.agents.report_agent import ReportAgent
from autoheal.agents.retrieval_agent import RetrievalEngine
from autoheal.models.report import ProcessResult, ResponseSource
from autoheal.observability.metrics import DECISIONS_TOTAL, MESSAGES_PROCESSED_TOTAL
from autoheal.rules.policy_engine import DecisionEngine
from autoheal.utils import preview
from autoheal.utils.error_handling import GenerationError, RetrievalError


logger = logging.getLogger(__name__)


EMPTY_MESSAGE_TEXT = "What would you like me to analyze or look up?"
NO_RESULT_TEXT = "I couldn't identify an action or find relevant history to answer that."
NO_ANSWER_TEXT = "I found history but couldn't generate a response."
RETRIEVAL_FAILED_TEXT = "Sorry, I couldn't search the conversation history right now. Please try again later."


class MessageOrchestrator:
    """
    Orchestrator that handles one inbound message.

    Execution order:
    1. ParserEngine (regex, then optional model)
    2. DecisionEngine + ReportAgent when an alert matched
    3. ApprovalCoordinator.execute for AUTO_REPLACE when auto-execution is on
    4. RetrievalEngine when nothing matched
    """

    def __init__(
        self,
        parser: ParserEngine,
        decision_engine: DecisionEngine,
        report_agent: ReportAgent,
        retrieval: RetrievalEngine,
        coordinator: Optional[ApprovalCoordinator] = None,
        auto_execute: bool = False,
    ):
        self.parser = parser
        self.decision_engine = decision_engine
        self.report_agent = report_agent
        self.retrieval = retrieval
        self.coordinator = coordinator
        self.auto_execute = auto_execute
        self.agent_name = "MessageOrchestrator"

    async def process(
        self,
        text: str,
        channel_scope: Optional[str] = None,
        origin_ref: Optional[str] = None,
    ) -> ProcessResult:
        """Produce the response envelope for a message

        Args:
            text: Message text
            channel_scope: Channel to search history in, or None for all channels
            origin_ref: Reference to the originating chat message

        Returns:
            ProcessResult with source policy_engine, rag_history or none
        """
        logger.info(
            f"[{self.agent_name}] Message received (scope: {channel_scope or 'all channels'}): "
            f"\"{preview(text)}\""
        )

        if not text or not text.strip():
            result = ProcessResult(source=ResponseSource.NONE, text=EMPTY_MESSAGE_TEXT)
        else:
            parse_result = await self.parser.parse(text)
            if parse_result.matched:
                result = await self._remediate(parse_result, origin_ref)
            else:
                result = await self._answer_from_history(text, channel_scope)

        MESSAGES_PROCESSED_TOTAL.labels(source=result.source.value).inc()
        logger.info(f"[{self.agent_name}] Response (source: {result.source.value}): \"{preview(result.text)}\"")
        return result

    async def _remediate(self, parse_result, origin_ref: Optional[str]) -> ProcessResult:
        parsed = parse_result.parsed
        decision = self.decision_engine.decide(parsed, parse_result.policy)
        DECISIONS_TOTAL.labels(decision=decision.decision.value).inc()

        report = self.report_agent.format_report(parsed, decision, parse_result.policy, origin_ref=origin_ref)
        data = report.model_dump(mode="json")
        text = report.summary

        if decision.is_automatic and self.auto_execute and self.coordinator is not None:
            outcome = await self.coordinator.execute(decision.action, parsed, origin_ref=origin_ref)
            data["execution"] = outcome.model_dump(mode="json")
            if outcome.success:
                text = f"{text}\n\n*Executed automatically:* `{decision.action}`"
            else:
                text = f"{text}\n\n*Automatic execution failed ({outcome.phase.value}):* {outcome.error}"

        return ProcessResult(source=ResponseSource.POLICY_ENGINE, text=text, data=data)

    async def _answer_from_history(self, text: str, channel_scope: Optional[str]) -> ProcessResult:
        try:
            contexts = await self.retrieval.retrieve_contexts(text, channel_scope)
        except RetrievalError as e:
            logger.error(f"[{self.agent_name}] History retrieval failed: {e}", exc_info=True)
            return ProcessResult(source=ResponseSource.NONE, text=RETRIEVAL_FAILED_TEXT)

        data = {"channel_scope": channel_scope, "context_count": len(contexts)}
        if not contexts:
            return ProcessResult(source=ResponseSource.NONE, text=NO_RESULT_TEXT, data=data)

        prompt = self.retrieval.build_prompt(text, contexts)
        try:
            answer = await self.retrieval.generate(prompt)
        except GenerationError as e:
            logger.error(f"[{self.agent_name}] Answer generation failed: {e}")
            answer = ""

        data["sources"] = [c.source for c in contexts]
        return ProcessResult(
            source=ResponseSource.RAG_HISTORY,
            text=answer or NO_ANSWER_TEXT,
            data=data,
        )
