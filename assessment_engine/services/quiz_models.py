"""
Quiz Domain Models

Plain dataclasses for source documents, question banks, quiz sessions,
responses and proctoring state. Every entity round-trips through
to_dict() / from_dict() for snapshot persistence.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from .text_chunker import TextChunk

# ============================================================================
# Levels and formats
# ============================================================================

LEVELS: Tuple[str, ...] = ("beginner", "intermediate", "advanced")
LEVEL_INDEX: Dict[str, int] = {level: idx for idx, level in enumerate(LEVELS)}
DIFFICULTY_LABELS = {"easy": "beginner", "medium": "intermediate", "hard": "advanced"}
QUESTION_FORMATS: Tuple[str, ...] = ("subjective", "mcq", "mixed")


def map_difficulty_to_level(label: Optional[str]) -> Optional[str]:
    """easy/medium/hard -> beginner/intermediate/advanced"""
    return DIFFICULTY_LABELS.get(str(label or "").strip().lower())


def normalize_level(level: Optional[str], default: str = "intermediate") -> str:
    raw = str(level or "").strip().lower()
    if raw in LEVEL_INDEX:
        return raw
    return map_difficulty_to_level(raw) or default


def normalize_question_format(value: Optional[str]) -> str:
    raw = str(value or "").strip().lower()
    return raw if raw in QUESTION_FORMATS else "subjective"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ============================================================================
# Question bank
# ============================================================================

@dataclass(frozen=True)
class Question:
    """A generated question; immutable after creation"""
    id: str
    difficulty: str
    prompt: str
    reference: str
    keywords: Tuple[str, ...]
    source_chunk_id: str
    type: str = "subjective"
    choices: Optional[Tuple[str, ...]] = None
    correct_index: Optional[int] = None
    explanation: str = ""
    summary: str = ""

    @property
    def is_mcq(self) -> bool:
        return self.type == "mcq"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["keywords"] = list(self.keywords)
        data["choices"] = list(self.choices) if self.choices is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        choices = data.get("choices")
        return cls(
            id=data["id"],
            difficulty=data["difficulty"],
            prompt=data["prompt"],
            reference=data.get("reference", ""),
            keywords=tuple(data.get("keywords") or ()),
            source_chunk_id=data.get("source_chunk_id", ""),
            type=data.get("type", "subjective"),
            choices=tuple(choices) if choices is not None else None,
            correct_index=data.get("correct_index"),
            explanation=data.get("explanation", ""),
            summary=data.get("summary", "")
        )


@dataclass
class FlowIssuanceLog:
    """Flow counter and previously issued flow fingerprints of a document set"""
    flow_counter: int = 0
    issued_fingerprints: set = field(default_factory=set)

    def next_ordinal(self) -> int:
        self.flow_counter += 1
        return self.flow_counter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow_counter": self.flow_counter,
            "issued_fingerprints": sorted(self.issued_fingerprints)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowIssuanceLog":
        return cls(
            flow_counter=int(data.get("flow_counter", 0)),
            issued_fingerprints=set(data.get("issued_fingerprints") or [])
        )


@dataclass
class SourceDocumentSet:
    """Uploaded texts combined into one corpus, with its derived question bank"""
    id: str
    owner_id: str
    title: str
    file_names: List[str]
    created_at: datetime
    chunks: List[TextChunk] = field(default_factory=list)
    question_bank: Dict[str, Question] = field(default_factory=dict)
    flow_log: FlowIssuanceLog = field(default_factory=FlowIssuanceLog)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "file_names": list(self.file_names),
            "created_at": _iso(self.created_at),
            "chunks": [c.to_dict() for c in self.chunks],
            "question_bank": [q.to_dict() for q in self.question_bank.values()],
            "flow_log": self.flow_log.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceDocumentSet":
        questions = [Question.from_dict(q) for q in data.get("question_bank", [])]
        return cls(
            id=data["id"],
            owner_id=data.get("owner_id", ""),
            title=data.get("title", ""),
            file_names=list(data.get("file_names") or []),
            created_at=_parse_dt(data.get("created_at")),
            chunks=[TextChunk(**c) for c in data.get("chunks", [])],
            question_bank={q.id: q for q in questions},
            flow_log=FlowIssuanceLog.from_dict(data.get("flow_log") or {})
        )


# ============================================================================
# Quiz session
# ============================================================================

@dataclass
class Response:
    """One answered (or drafted) question of a quiz session"""
    question_id: str
    difficulty: str
    answer: str = ""
    mcq_choice: Optional[int] = None
    mcq_correct_index: Optional[int] = None
    percentage: Optional[float] = None
    base_percentage: Optional[float] = None
    marks_awarded: Optional[float] = None
    cheating_penalty: int = 0
    feedback: Optional[str] = None
    explanation: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    is_ai: bool = False
    ai_reasoning: Optional[str] = None
    ai_confidence: Optional[float] = None
    ai_rubric: Optional[Dict[str, Any]] = None
    teacher_marks_awarded: Optional[float] = None
    teacher_feedback: Optional[str] = None
    is_draft: bool = False
    word_count: int = 0
    character_count: int = 0
    last_saved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_saved_at"] = _iso(self.last_saved_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        data = dict(data)
        data["last_saved_at"] = _parse_dt(data.get("last_saved_at"))
        return cls(**data)


@dataclass
class ProctorEvent:
    type: str
    meta: Dict[str, Any]
    timestamp: str
    risk_score: int


@dataclass
class ProctorState:
    """Bounded risk accumulator owned by exactly one quiz session"""
    risk_score: int = 0
    warning_count: int = 0
    warning_messages: List[str] = field(default_factory=list)
    events: List[ProctorEvent] = field(default_factory=list)

    def count_events(self, event_type: str) -> int:
        return sum(1 for e in self.events if e.type == event_type)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProctorState":
        return cls(
            risk_score=int(data.get("risk_score", 0)),
            warning_count=int(data.get("warning_count", 0)),
            warning_messages=list(data.get("warning_messages") or []),
            events=[ProctorEvent(**e) for e in data.get("events", [])]
        )


@dataclass
class PublishState:
    """Teacher review and publish bookkeeping"""
    teacher_overall_marks: Optional[float] = None
    teacher_overall_remark: Optional[str] = None
    teacher_published_at: Optional[datetime] = None
    publish_count: int = 0
    last_published_review_hash: Optional[str] = None
    last_review_edited_at: Optional[datetime] = None

    @property
    def is_published(self) -> bool:
        return self.teacher_published_at is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["teacher_published_at"] = _iso(self.teacher_published_at)
        data["last_review_edited_at"] = _iso(self.last_review_edited_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PublishState":
        data = dict(data)
        data["teacher_published_at"] = _parse_dt(data.get("teacher_published_at"))
        data["last_review_edited_at"] = _parse_dt(data.get("last_review_edited_at"))
        return cls(**data)


@dataclass
class QuizSession:
    """One student's quiz attempt; mutated only by the engine's session operations"""
    id: str
    source_document_set_id: str
    student_id: str
    initial_level: str
    current_level: str
    question_count: int
    assigned_bank: List[Question]
    started_at: datetime
    deadline_at: datetime
    total_marks: float
    marks_per_question: float
    test_id: Optional[str] = None
    roll_no: Optional[str] = None
    topic: Optional[str] = None
    question_format: str = "subjective"
    flow_ordinal: int = 0
    flow_fingerprint: str = ""
    asked_question_ids: List[str] = field(default_factory=list)
    responses: List[Response] = field(default_factory=list)
    current_question_id: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    timed_out: bool = False
    proctor: ProctorState = field(default_factory=ProctorState)
    publish: PublishState = field(default_factory=PublishState)

    def question_by_id(self, question_id: Optional[str]) -> Optional[Question]:
        if not question_id:
            return None
        return next((q for q in self.assigned_bank if q.id == question_id), None)

    @property
    def current_question(self) -> Optional[Question]:
        return self.question_by_id(self.current_question_id)

    @property
    def answered(self) -> List[Response]:
        """Final (non-draft) responses in answer order"""
        return [r for r in self.responses if not r.is_draft]

    def complete(self, at: datetime):
        self.completed = True
        self.completed_at = self.completed_at or at
        self.current_question_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_document_set_id": self.source_document_set_id,
            "student_id": self.student_id,
            "initial_level": self.initial_level,
            "current_level": self.current_level,
            "question_count": self.question_count,
            "assigned_bank": [q.to_dict() for q in self.assigned_bank],
            "started_at": _iso(self.started_at),
            "deadline_at": _iso(self.deadline_at),
            "total_marks": self.total_marks,
            "marks_per_question": self.marks_per_question,
            "test_id": self.test_id,
            "roll_no": self.roll_no,
            "topic": self.topic,
            "question_format": self.question_format,
            "flow_ordinal": self.flow_ordinal,
            "flow_fingerprint": self.flow_fingerprint,
            "asked_question_ids": list(self.asked_question_ids),
            "responses": [r.to_dict() for r in self.responses],
            "current_question_id": self.current_question_id,
            "completed": self.completed,
            "completed_at": _iso(self.completed_at),
            "timed_out": self.timed_out,
            "proctor": self.proctor.to_dict(),
            "publish": self.publish.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizSession":
        return cls(
            id=data["id"],
            source_document_set_id=data["source_document_set_id"],
            student_id=data["student_id"],
            initial_level=data["initial_level"],
            current_level=data["current_level"],
            question_count=int(data["question_count"]),
            assigned_bank=[Question.from_dict(q) for q in data.get("assigned_bank", [])],
            started_at=_parse_dt(data["started_at"]),
            deadline_at=_parse_dt(data["deadline_at"]),
            total_marks=data["total_marks"],
            marks_per_question=data["marks_per_question"],
            test_id=data.get("test_id"),
            roll_no=data.get("roll_no"),
            topic=data.get("topic"),
            question_format=data.get("question_format", "subjective"),
            flow_ordinal=int(data.get("flow_ordinal", 0)),
            flow_fingerprint=data.get("flow_fingerprint", ""),
            asked_question_ids=list(data.get("asked_question_ids") or []),
            responses=[Response.from_dict(r) for r in data.get("responses", [])],
            current_question_id=data.get("current_question_id"),
            completed=bool(data.get("completed")),
            completed_at=_parse_dt(data.get("completed_at")),
            timed_out=bool(data.get("timed_out")),
            proctor=ProctorState.from_dict(data.get("proctor") or {}),
            publish=PublishState.from_dict(data.get("publish") or {})
        )
