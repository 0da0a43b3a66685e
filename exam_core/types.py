from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

ExamType = Literal["reading", "listening", "writing"]
StepType = Literal["reading", "listening", "writing"]
SessionStatus = Literal["loading", "active", "submitting", "awaiting_route", "submitted", "error"]
WritingRoute = Literal["standard", "ai"]


@dataclass(frozen=True)
class Candidate:
    """Entry of a shared pool (headings, features, summary word bank)."""
    id: str
    text: str


@dataclass(frozen=True)
class ChoiceOption:
    label: str
    text: str


@dataclass(frozen=True)
class Question:
    q_number: int
    correct_answers: Tuple[str, ...] = ()
    text: Optional[str] = None
    option: Tuple[ChoiceOption, ...] = ()
    explanation: str = ""
    passage_reference: str = ""


@dataclass(frozen=True)
class QuestionGroup:
    type: str
    questions: Tuple[Question, ...] = ()
    instructions: Optional[str] = None
    text: Optional[str] = None
    headings: Tuple[Candidate, ...] = ()
    options: Tuple[Candidate, ...] = ()
    layout: Optional[str] = None


@dataclass(frozen=True)
class Passage:
    id: str
    title: str = ""
    content: str = ""
    audio_url: Optional[str] = None
    question_groups: Tuple[QuestionGroup, ...] = ()


# listening sections share the passage shape
Section = Passage


@dataclass(frozen=True)
class WritingTask:
    id: str
    title: str = ""
    prompt: str = ""
    task_type: str = "task2"
    image_url: Optional[str] = None
    min_words: int = 0


@dataclass(frozen=True)
class ExamDocument:
    id: str
    title: str = ""
    duration_minutes: int = 60
    type: ExamType = "reading"
    reading: Tuple[Passage, ...] = ()
    listening: Tuple[Section, ...] = ()
    writing: Tuple[WritingTask, ...] = ()
    is_real_test: bool = False
    full_audio: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    absolute_index: int
    type: str
    q_number: int
    instructions: Optional[str] = None
    headings: Tuple[Candidate, ...] = ()
    options: Tuple[Candidate, ...] = ()
    text: Optional[str] = None
    option: Tuple[ChoiceOption, ...] = ()


@dataclass(frozen=True)
class Step:
    type: StepType
    label: str
    item: Any
    start_slot_index: int
    end_slot_index: int
    task_index: Optional[int] = None

    @property
    def is_writing(self) -> bool:
        return self.type == "writing"

    def __len__(self) -> int:
        return max(0, self.end_slot_index - self.start_slot_index)


@dataclass
class Verdict:
    is_correct: bool
    your_answer: str
    correct_answer: str


@dataclass
class ReviewEntry:
    q_number: int
    type: str
    your_answer: str
    correct_answer: str
    is_correct: bool
    question_text: Optional[str] = None
    options: List[Dict[str, str]] = field(default_factory=list)
    headings: List[Dict[str, str]] = field(default_factory=list)
    explanation: str = ""
    passage_reference: str = ""
    item_type: str = "reading"


@dataclass
class WritingAnswer:
    task_id: str
    task_title: str
    answer_text: str
    word_count: int


@dataclass
class SubmissionResult:
    score: int
    total: int
    wrong: int
    skipped: int
    question_review: List[ReviewEntry] = field(default_factory=list)
    time_taken_ms: int = 0
    percentage: Optional[int] = None
    band: Optional[float] = None
    is_practice: bool = False
    attempt_id: Optional[str] = None
    scoped_step: Optional[int] = None
    writing_answers: List[WritingAnswer] = field(default_factory=list)
    writing_submission_id: Optional[str] = None
    writing_status: Optional[str] = None
    writing_band: Optional[float] = None
    writing_feedback: Dict[str, Any] = field(default_factory=dict)
    stats_by_type: Dict[str, Dict[str, int]] = field(default_factory=dict)
