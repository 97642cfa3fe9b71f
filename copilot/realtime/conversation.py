"""
Conversation Manager Module

Builds the request context for each dispatch, calls the generation gateway
and commits the exchange to the right history.

Interview mode:
- Output-evaluation and technical questions go out with minimal context
  (system turn plus one instruction turn) so the reply format stays fixed.
- Other questions use the full rolling history plus a one-off instruction
  asking for a short first-person answer.
- Every reply except a technical one is cleaned with trim_reply. Technical
  replies keep their fenced code as returned.

QA mode always sends the full QA history and keeps replies as returned.
Typed questions routed to the code template are reported as technical.

The history is only mutated after the gateway returns, so a failed call
leaves both histories exactly as they were.
"""

import time
from dataclasses import dataclass
from typing import List

from copilot.core.classifier import (
    ClassificationResult,
    classify,
    detect_language,
    is_code_question,
)
from copilot.core.formatting import split_explanation_and_code, trim_reply
from copilot.core.llm import (
    INTERVIEW_ANSWER_TEMPLATE,
    MANUAL_CODE_TEMPLATE,
    Turn,
    format_output_eval_prompt,
    format_technical_prompt,
    interview_user_text,
)
from copilot.logger import get_logger
from copilot.realtime.gateway import GenerationGateway
from copilot.realtime.memory import ConversationHistory
from copilot.realtime.session import Mode, Session

logger = get_logger(__name__)


@dataclass
class Answer:
    """
    A generated answer and what produced it.

    Attributes:
        text: Reply as stored in history and displayed
        mode: Mode whose history was used
        question: The utterance or typed question
        classification: Intent flags of the question
        explanation: Text before the first fenced code block
        code: Body of the first fenced code block ('' if none)
        latency_ms: Gateway round trip
    """
    text: str
    mode: Mode
    question: str
    classification: ClassificationResult
    explanation: str = ""
    code: str = ""
    latency_ms: float = 0.0


class ConversationManager:
    """
    Owns every read and write of a session's conversation histories.

    Usage:
        manager = ConversationManager(session, GeminiGateway())
        answer = await manager.process(Mode.INTERVIEW, "Tell me about yourself")
        answer = await manager.ask("what does console.log(typeof null) print")
    """

    def __init__(self, session: Session, gateway: GenerationGateway):
        self._session = session
        self._gateway = gateway

    @property
    def session(self) -> Session:
        return self._session

    async def process(self, mode: Mode, text: str) -> Answer:
        """
        Answer a dispatched utterance in the given mode.

        Raises:
            GatewayError: If the generation call fails (histories untouched)
        """
        text = text.strip()
        if mode is Mode.INTERVIEW:
            return await self._process_interview(text)
        return await self._process_qa(text)

    async def ask(self, question: str) -> Answer:
        """
        Answer a typed question against the QA history.

        Output-evaluation questions get the Output/Reason template, code
        questions the explanation-plus-code template, anything else is sent
        as typed. The interview history is never touched.
        """
        question = question.strip()
        if not question:
            raise ValueError("Question cannot be empty")

        classification = classify(question, evaluate_technical=False)
        if classification.is_output_eval:
            prompt = format_output_eval_prompt(question)
        elif is_code_question(question):
            prompt = MANUAL_CODE_TEMPLATE.format(question=question)
            classification = ClassificationResult(
                is_technical=True, language=detect_language(question)
            )
        else:
            prompt = question

        history = self._session.history(Mode.QA)
        user_turn = Turn.user(prompt)
        reply, latency_ms = await self._generate(history.context([user_turn]))
        self._commit(history, user_turn, Turn.model(reply))
        return self._answer(reply, Mode.QA, question, classification, latency_ms)

    async def _process_interview(self, text: str) -> Answer:
        history = self._session.history(Mode.INTERVIEW)
        classification = classify(text, evaluate_technical=True)
        user_turn = Turn.user(interview_user_text(text))

        if classification.is_output_eval:
            context = history.minimal_context([Turn.user(format_output_eval_prompt(text))])
        elif classification.is_technical:
            context = history.minimal_context(
                [Turn.user(format_technical_prompt(text, classification.language))]
            )
        else:
            instruction = Turn.user(INTERVIEW_ANSWER_TEMPLATE.format(question=text))
            context = history.context([user_turn, instruction])

        reply, latency_ms = await self._generate(context)
        if classification.intent != "technical":
            reply = trim_reply(reply)

        self._commit(history, user_turn, Turn.model(reply))
        logger.info(f"Interview answer ({classification.intent}, {latency_ms:.0f}ms)")
        return self._answer(reply, Mode.INTERVIEW, text, classification, latency_ms)

    async def _process_qa(self, text: str) -> Answer:
        history = self._session.history(Mode.QA)
        classification = classify(text, evaluate_technical=False)

        turns: List[Turn] = [Turn.user(text)]
        if classification.is_output_eval:
            turns.append(Turn.user(format_output_eval_prompt(text)))

        reply, latency_ms = await self._generate(history.context(turns))
        self._commit(history, *turns, Turn.model(reply))
        logger.info(f"QA answer ({classification.intent}, {latency_ms:.0f}ms)")
        return self._answer(reply, Mode.QA, text, classification, latency_ms)

    def _commit(self, history: ConversationHistory, *turns: Turn) -> None:
        # A stopped session keeps its histories as they were
        if not self._session.active:
            logger.info("Session stopped before the reply arrived, not recording it")
            return
        history.commit(*turns)

    async def _generate(self, context: List[Turn]):
        start_time = time.time()
        reply = await self._gateway.generate(context)
        return reply, (time.time() - start_time) * 1000

    @staticmethod
    def _answer(
        reply: str,
        mode: Mode,
        question: str,
        classification: ClassificationResult,
        latency_ms: float,
    ) -> Answer:
        parts = split_explanation_and_code(reply)
        return Answer(
            text=reply,
            mode=mode,
            question=question,
            classification=classification,
            explanation=parts.explanation,
            code=parts.code,
            latency_ms=latency_ms,
        )
