"""
Quiz Engine - Caller-facing operations of the assessment core

Implements:
- Document ingestion and question bank derivation
- Quiz start with a personalized, fingerprinted flow
- Adaptive question selection and answer scoring
- Draft autosave and proctoring events
- Results, teacher review/publish, bulk publish and test analytics

Every mutation of a document set or quiz session runs under that entity's
lock. Deadlines are checked lazily on access. Snapshots go through the
write-behind queue and never block or fail an operation.
"""
import os
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..config import settings
from .adaptive_selector import adjust_level, pick_next_question
from .answer_evaluator import AnswerEvaluatorService, Evaluation, get_answer_evaluator
from .exceptions import (
    DocumentSetNotFound,
    EmptyQuestionBank,
    InvalidEventType,
    NoActiveQuestion,
    SessionCompleted,
    SessionNotFound,
)
from .flow_builder import FlowBuilder
from .publish_workflow import (
    UNSET,
    ReviewEdit,
    bulk_publish_item,
    bulk_publish_report,
    submit_review as apply_review,
)
from .question_generator import QuestionBankSynthesizer, get_question_synthesizer
from .quiz_models import (
    Question,
    QuizSession,
    Response,
    SourceDocumentSet,
    normalize_level,
    normalize_question_format,
)
from .quiz_repository import (
    EntityLocks,
    InMemoryRepository,
    SnapshotStore,
    WriteBehindQueue,
    create_snapshot_queue,
)
from .quiz_telemetry import QuizTelemetry, get_quiz_telemetry
from .result_builder import build_result, build_test_analytics
from .text_chunker import combine_documents
from ..proctor.scoring import apply_proctor_event

logger = logging.getLogger(__name__)

DOCUMENT_SET = "document_set"
QUIZ_SESSION = "quiz_session"


def question_payload(question: Question, number: int, total: int) -> Dict[str, Any]:
    """Question as shown to the student; reference and answer key stay hidden"""
    return {
        "id": question.id,
        "prompt": question.prompt,
        "difficulty": question.difficulty,
        "type": question.type,
        "choices": list(question.choices) if question.is_mcq and question.choices else None,
        "number": number,
        "total": total
    }


def clamp_question_count(value: Any) -> int:
    """Clamp to [1, MAX_QUESTION_COUNT]; missing or invalid means the default"""
    try:
        count = int(value)
    except (TypeError, ValueError):
        count = 0
    if count <= 0:
        count = settings.DEFAULT_QUESTION_COUNT
    return max(1, min(settings.MAX_QUESTION_COUNT, count))


def clamp_duration_minutes(value: Any) -> int:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        minutes = 0
    if minutes <= 0:
        minutes = settings.DEFAULT_DURATION_MINUTES
    return max(settings.MIN_DURATION_MINUTES, minutes)


@dataclass
class AnswerOutcome:
    """Result of one answer submission"""
    completed: bool
    current_level: str
    evaluation: Optional[Evaluation] = None
    timed_out: bool = False
    question: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    time_left_sec: int = 0
    proctor: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "timed_out": self.timed_out,
            "current_level": self.current_level,
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
            "question": self.question,
            "result": self.result,
            "time_left_sec": self.time_left_sec,
            "proctor": self.proctor
        }


class QuizEngine:
    """
    Adaptive assessment and integrity engine.

    Args:
        evaluator: Answer scoring service (default: configured singleton)
        synthesizer: Question bank synthesizer
        telemetry: Lifecycle telemetry
        snapshot_store: Optional durable store used to restore entities
        write_queue: Optional write-behind queue for snapshots
        clock: Callable returning the current (naive UTC) time
    """

    def __init__(
        self,
        evaluator: Optional[AnswerEvaluatorService] = None,
        synthesizer: Optional[QuestionBankSynthesizer] = None,
        telemetry: Optional[QuizTelemetry] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        write_queue: Optional[WriteBehindQueue] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.evaluator = evaluator or get_answer_evaluator()
        self.synthesizer = synthesizer or get_question_synthesizer()
        self.chunker = self.synthesizer.chunker
        self.flow_builder = FlowBuilder(self.synthesizer)
        self.telemetry = telemetry or get_quiz_telemetry()
        self.snapshot_store = snapshot_store
        self.write_queue = write_queue
        self.clock = clock or datetime.utcnow

        self.document_sets: InMemoryRepository[SourceDocumentSet] = InMemoryRepository(DOCUMENT_SET)
        self.sessions: InMemoryRepository[QuizSession] = InMemoryRepository(QUIZ_SESSION)
        self.locks = EntityLocks()

    # ========================================================================
    # Loading & persistence
    # ========================================================================

    def _persist(self, kind: str, entity: Union[SourceDocumentSet, QuizSession]):
        if self.write_queue is not None:
            self.write_queue.submit(kind, entity.id, entity.to_dict())

    def _load_document_set(self, set_id: str) -> Optional[SourceDocumentSet]:
        document_set = self.document_sets.get(set_id)
        if document_set is None and self.snapshot_store is not None:
            data = self.snapshot_store.load(DOCUMENT_SET, set_id)
            if data:
                document_set = self.document_sets.put(set_id, SourceDocumentSet.from_dict(data))
                logger.info(f"[PERSIST] Restored document set {set_id[:8]}... from snapshot")
        return document_set

    def _load_session(self, quiz_id: str) -> Optional[QuizSession]:
        session = self.sessions.get(quiz_id)
        if session is None and self.snapshot_store is not None:
            data = self.snapshot_store.load(QUIZ_SESSION, quiz_id)
            if data:
                session = self.sessions.put(quiz_id, QuizSession.from_dict(data))
                logger.info(f"[PERSIST] Restored quiz session {quiz_id[:8]}... from snapshot")
        return session

    def _require_session(self, quiz_id: str) -> QuizSession:
        session = self._load_session(quiz_id)
        if session is None:
            raise SessionNotFound()
        return session

    def _expire_if_due(self, session: QuizSession, now: datetime) -> bool:
        """Force completion of an overdue session; True if it expired now"""
        if session.completed or now <= session.deadline_at:
            return False
        session.timed_out = True
        session.complete(now)
        self.telemetry.log_quiz_timed_out(session.id)
        self._persist(QUIZ_SESSION, session)
        return True

    def _session_lock(self, quiz_id: str):
        return self.locks.lock(f"session:{quiz_id}")

    def _time_left(self, session: QuizSession, now: datetime) -> int:
        return max(0, int((session.deadline_at - now).total_seconds()))

    # ========================================================================
    # Documents & question banks
    # ========================================================================

    async def ingest_documents(
        self,
        owner_id: str,
        texts: List[str],
        file_names: Optional[List[str]] = None,
        title: Optional[str] = None
    ) -> SourceDocumentSet:
        """
        Combine extracted texts into a document set and derive its bank.

        Raises:
            InsufficientContent: combined text under the minimum length
            EmptyQuestionBank: no question could be generated
        """
        file_names = list(file_names or [])
        corpus = combine_documents(texts)
        chunks = self.chunker.chunk_text(corpus)

        first_name = file_names[0] if file_names else "source"
        document_set = SourceDocumentSet(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=str(title or "").strip() or os.path.splitext(first_name)[0],
            file_names=file_names,
            created_at=self.clock(),
            chunks=chunks
        )

        async with self.locks.lock(f"set:{document_set.id}"):
            self.create_question_bank(document_set, f"{document_set.id}_{first_name}")
            self.document_sets.put(document_set.id, document_set)
            self._persist(DOCUMENT_SET, document_set)

        logger.info(f"[BANK] Ingested '{document_set.title}' ({len(corpus)} chars) as {document_set.id[:8]}...")
        return document_set

    def create_question_bank(self, document_set: SourceDocumentSet, seed: str) -> Dict[str, Question]:
        """
        Derive (once) and cache the question bank of a document set.

        Returns the cached bank unchanged when one already exists.
        """
        if document_set.question_bank:
            return document_set.question_bank

        bank = self.synthesizer.generate_bank(document_set.chunks, seed)
        if not bank:
            raise EmptyQuestionBank()
        document_set.question_bank = bank
        self.telemetry.log_bank_created(document_set.id, len(document_set.chunks), len(bank))
        return bank

    def get_document_set(self, set_id: str) -> SourceDocumentSet:
        document_set = self._load_document_set(set_id)
        if document_set is None:
            raise DocumentSetNotFound()
        return document_set

    # ========================================================================
    # Quiz sessions
    # ========================================================================

    async def create_quiz_session(
        self,
        document_set_id: str,
        student_id: str,
        initial_level: Optional[str] = None,
        question_count: Any = None,
        topic: Optional[str] = None,
        question_format: Optional[str] = None,
        duration_minutes: Any = None,
        test_id: Optional[str] = None,
        roll_no: Optional[str] = None
    ) -> QuizSession:
        """
        Start a quiz attempt with a fresh flow and its first question.

        Raises:
            DocumentSetNotFound: unknown document set
            EmptyQuestionBank: no question could be selected
        """
        document_set = self.get_document_set(document_set_id)
        count = clamp_question_count(question_count)
        level = normalize_level(initial_level, settings.DEFAULT_INITIAL_LEVEL)
        fmt = normalize_question_format(question_format)

        async with self.locks.lock(f"set:{document_set.id}"):
            first_name = document_set.file_names[0] if document_set.file_names else "source"
            self.create_question_bank(document_set, f"{document_set.id}_{first_name}")
            flow = self.flow_builder.build_flow(document_set, student_id, count, topic, fmt)
            self._persist(DOCUMENT_SET, document_set)

        now = self.clock()
        session = QuizSession(
            id=str(uuid.uuid4()),
            source_document_set_id=document_set.id,
            student_id=student_id,
            initial_level=level,
            current_level=level,
            question_count=count,
            assigned_bank=flow.questions,
            started_at=now,
            deadline_at=now + timedelta(minutes=clamp_duration_minutes(duration_minutes)),
            total_marks=settings.TOTAL_MARKS,
            marks_per_question=round(settings.TOTAL_MARKS / count, 2),
            test_id=test_id,
            roll_no=roll_no,
            topic=str(topic or "").strip() or None,
            question_format=fmt,
            flow_ordinal=flow.flow_ordinal,
            flow_fingerprint=flow.fingerprint
        )

        first = pick_next_question(session)
        if first is None:
            raise EmptyQuestionBank()
        session.current_question_id = first.id

        self.sessions.put(session.id, session)
        self._persist(QUIZ_SESSION, session)
        self.telemetry.log_quiz_started(session.id, student_id, count, fmt, flow.duplicate)
        return session

    def pick_next_question(self, session: QuizSession) -> Optional[Question]:
        """Select and record the next question; caller holds the session lock"""
        return pick_next_question(session)

    async def get_session(self, quiz_id: str) -> QuizSession:
        """Load a session, completing it first if its deadline has passed"""
        async with self._session_lock(quiz_id):
            session = self._require_session(quiz_id)
            self._expire_if_due(session, self.clock())
            return session

    def session_view(self, session: QuizSession) -> Dict[str, Any]:
        """Student-facing state of a session"""
        now = self.clock()
        question = session.current_question
        return {
            "quiz_id": session.id,
            "test_id": session.test_id,
            "completed": session.completed,
            "timed_out": session.timed_out,
            "current_level": session.current_level,
            "question_format": session.question_format,
            "marks_per_question": session.marks_per_question,
            "total_marks": session.total_marks,
            "time_left_sec": self._time_left(session, now),
            "question": question_payload(
                question, len(session.answered) + 1, session.question_count
            ) if question else None,
            "proctor": {
                "risk_score": session.proctor.risk_score,
                "warning_count": session.proctor.warning_count
            }
        }

    # ========================================================================
    # Answers
    # ========================================================================

    async def submit_answer(self, quiz_id: str, answer: Optional[str] = None, mcq_choice: Any = None) -> AnswerOutcome:
        """
        Score the answer to the current question and advance the session.

        An overdue session is completed and reported as timed out instead
        of being scored.

        Raises:
            SessionNotFound, SessionCompleted, NoActiveQuestion,
            InvalidChoice, AnswerTooShort
        """
        async with self._session_lock(quiz_id):
            session = self._require_session(quiz_id)
            if session.completed:
                raise SessionCompleted()

            now = self.clock()
            if self._expire_if_due(session, now):
                return AnswerOutcome(
                    completed=True,
                    timed_out=True,
                    current_level=session.current_level,
                    result=build_result(session, now),
                    proctor=session.proctor.to_dict()
                )

            question = session.current_question
            if question is None:
                raise NoActiveQuestion()

            evaluation = await self.evaluator.evaluate(
                question,
                answer=answer,
                mcq_choice=mcq_choice,
                risk_score=session.proctor.risk_score,
                marks_per_question=session.marks_per_question
            )

            self._record_response(session, question, answer, evaluation)
            session.current_level = adjust_level(session.current_level, evaluation.percentage)
            self.telemetry.log_answer_submitted(
                session.id, question.id, evaluation.percentage, evaluation.cheating_penalty, evaluation.is_ai
            )

            now = self.clock()
            next_question = None
            if len(session.answered) < session.question_count:
                next_question = self.pick_next_question(session)

            if next_question is None:
                session.complete(now)
                result = build_result(session, now)
                self.telemetry.log_quiz_completed(session.id, result["average_percentage"])
                self._persist(QUIZ_SESSION, session)
                return AnswerOutcome(
                    completed=True,
                    current_level=session.current_level,
                    evaluation=evaluation,
                    result=result,
                    time_left_sec=self._time_left(session, now),
                    proctor=session.proctor.to_dict()
                )

            session.current_question_id = next_question.id
            self._persist(QUIZ_SESSION, session)
            return AnswerOutcome(
                completed=False,
                current_level=session.current_level,
                evaluation=evaluation,
                question=question_payload(next_question, len(session.answered) + 1, session.question_count),
                time_left_sec=self._time_left(session, now),
                proctor=session.proctor.to_dict()
            )

    def _record_response(self, session: QuizSession, question: Question, answer: Optional[str], evaluation: Evaluation):
        # the final response replaces any autosaved draft
        session.responses = [
            r for r in session.responses
            if not (r.is_draft and r.question_id == question.id)
        ]
        details = evaluation.details or {}
        session.responses.append(Response(
            question_id=question.id,
            difficulty=question.difficulty,
            answer="" if question.is_mcq else str(answer or ""),
            mcq_choice=details.get("choice") if question.is_mcq else None,
            mcq_correct_index=question.correct_index if question.is_mcq else None,
            percentage=evaluation.percentage,
            base_percentage=evaluation.base_percentage,
            marks_awarded=evaluation.marks_awarded,
            cheating_penalty=evaluation.cheating_penalty,
            feedback=evaluation.feedback or None,
            explanation=evaluation.explanation or None,
            details=details,
            is_ai=evaluation.is_ai,
            ai_reasoning=evaluation.reasoning,
            ai_confidence=evaluation.confidence,
            ai_rubric=evaluation.rubric
        ))

    async def autosave_draft(self, quiz_id: str, answer: Optional[str]) -> Dict[str, Any]:
        """
        Save an unscored draft for the current question.

        Raises:
            SessionNotFound, NoActiveQuestion
        """
        async with self._session_lock(quiz_id):
            session = self._require_session(quiz_id)
            if session.completed:
                return {"ok": True, "saved": False, "completed": True}

            now = self.clock()
            if self._expire_if_due(session, now):
                return {"ok": True, "saved": False, "completed": True, "timed_out": True}

            question = session.current_question
            if question is None:
                raise NoActiveQuestion()

            text = str(answer or "")
            word_count = len(text.split())
            draft = next(
                (r for r in session.responses if r.is_draft and r.question_id == question.id),
                None
            )
            if draft is None:
                draft = Response(question_id=question.id, difficulty=question.difficulty, is_draft=True)
                session.responses.append(draft)
            draft.answer = text
            draft.word_count = word_count
            draft.character_count = len(text)
            draft.last_saved_at = now

            self._persist(QUIZ_SESSION, session)
            return {
                "ok": True,
                "saved": True,
                "word_count": word_count,
                "character_count": len(text),
                "timestamp": now.isoformat()
            }

    # ========================================================================
    # Proctoring
    # ========================================================================

    async def register_proctor_event(
        self,
        quiz_id: str,
        event_type: Optional[str],
        meta: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Fold a proctoring signal into the session's risk state.

        Events on a completed session are ignored.

        Raises:
            SessionNotFound, InvalidEventType
        """
        async with self._session_lock(quiz_id):
            session = self._require_session(quiz_id)
            now = self.clock()
            self._expire_if_due(session, now)
            if session.completed:
                return {
                    "risk_score": session.proctor.risk_score,
                    "warning": "",
                    "warning_count": session.proctor.warning_count,
                    "cancelled": False,
                    "completed": True
                }

            kind = str(event_type or "").strip().lower()
            if not kind:
                raise InvalidEventType()

            outcome = apply_proctor_event(session, kind, meta, now)
            self.telemetry.log_proctor_event(session.id, kind, outcome.state.risk_score, outcome.cancelled)
            self._persist(QUIZ_SESSION, session)
            return {**outcome.to_dict(), "completed": session.completed}

    async def proctor_log(self, quiz_id: str) -> Dict[str, Any]:
        session = await self.get_session(quiz_id)
        return {
            "quiz_id": session.id,
            "student_id": session.student_id,
            "roll_no": session.roll_no,
            "proctor": session.proctor.to_dict()
        }

    # ========================================================================
    # Results & publishing
    # ========================================================================

    async def build_result(self, quiz_id: str) -> Dict[str, Any]:
        session = await self.get_session(quiz_id)
        return build_result(session, self.clock())

    async def submit_review(
        self,
        quiz_id: str,
        edits: Iterable[ReviewEdit] = (),
        overall_marks: Any = UNSET,
        overall_remark: Any = UNSET,
        publish_final: bool = False
    ) -> Dict[str, Any]:
        """
        Apply teacher edits and optionally publish.

        Raises:
            SessionNotFound, SessionNotCompleted, OverallMarksMissing,
            PublishLimitReached, NoChangesSincePublish
        """
        async with self._session_lock(quiz_id):
            session = self._require_session(quiz_id)
            now = self.clock()
            self._expire_if_due(session, now)
            try:
                summary = apply_review(session, list(edits), overall_marks, overall_remark, publish_final, now)
            finally:
                # edits survive a rejected publish
                self._persist(QUIZ_SESSION, session)

            if publish_final:
                self.telemetry.log_review_published(session.id, session.publish.publish_count)
            return summary

    async def bulk_publish(self, quiz_ids: Iterable[str], test_id: Optional[str] = None) -> Dict[str, Any]:
        """Publish several sessions; each failure is reported per item"""
        now = self.clock()
        results = []
        for quiz_id in quiz_ids:
            async with self._session_lock(quiz_id):
                session = self._load_session(quiz_id)
                if session is not None:
                    self._expire_if_due(session, now)
                item = bulk_publish_item(quiz_id, session, test_id, now)
                if item["success"]:
                    self._persist(QUIZ_SESSION, session)
                    self.telemetry.log_review_published(session.id, session.publish.publish_count)
                results.append(item)
        return bulk_publish_report(results, test_id)

    def test_analytics(self, test_id: str) -> Dict[str, Any]:
        return build_test_analytics(self.sessions.values(), test_id)

    async def flush(self):
        """Wait for queued snapshots to be written"""
        if self.write_queue is not None:
            await self.write_queue.flush()


_engine: Optional[QuizEngine] = None


def get_quiz_engine() -> QuizEngine:
    """Get singleton engine wired from settings"""
    global _engine
    if _engine is None:
        store, queue = create_snapshot_queue()
        _engine = QuizEngine(snapshot_store=store, write_queue=queue)
    return _engine
