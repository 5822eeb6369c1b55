"""
Question Bank Synthesizer
=========================

Deterministically turns text chunks into a reusable question bank.

- Subjective prompts are filled from hand-authored templates per
  difficulty tier (beginner: definitions/examples, intermediate:
  comparisons/mechanisms, advanced: critical evaluation/design).
- MCQ variants use the reference passage's first sentence as the correct
  choice and other passages' first sentences as distractors.
- All randomness comes from a SeededRandom, so one seed string always
  reproduces the same bank.
"""
import re
import logging
from dataclasses import dataclass, replace
from typing import List, Dict, Sequence, Optional

from .keyword_index import top_keywords
from .quiz_models import Question, LEVELS
from .seeded_random import SeededRandom
from .text_chunker import TextChunk, TextChunker

logger = logging.getLogger(__name__)

MAX_CHUNKS = 160
KEYWORDS_PER_CHUNK = 10
QUESTION_ID_SUFFIX_RANGE = 100000

MCQ_CHOICE_COUNT = 4
MCQ_MAX_DISTRACTORS = 8
MCQ_MAX_DRAWS = 80
MCQ_FIRST_SENTENCE_CHARS = 220
MCQ_INSTRUCTION = "Select the best-supported statement based on the source material:"
MCQ_FILLER_CHOICE = "None of the above (review the reference)."

KEYWORD_FALLBACKS = ("this concept", "its applications", "related principles")

PROMPT_TEMPLATES: Dict[str, Sequence[str]] = {
    "beginner": (
        "What is {kw1}? Explain it in your own words with a simple example.",
        "Define {kw1} and explain why it is important in the context of {kw2}.",
        "In simple terms, describe what happens when {kw1} is used. Provide a real-world analogy.",
        "List and briefly explain the key characteristics of {kw1}.",
        "How does {kw1} relate to {kw2}? Explain with a basic example.",
        "What problem does {kw1} solve? Describe a scenario where it would be useful.",
    ),
    "intermediate": (
        "Compare and contrast {kw1} with {kw2}. What are the advantages of each approach?",
        "Explain the working mechanism of {kw1}. How does it interact with {kw2} in practice?",
        "Describe a real-world scenario where {kw1} is applied. What challenges might arise and how are they addressed?",
        "Analyze how {kw1} impacts {kw2}. Discuss at least two trade-offs involved.",
        "What are the key differences between {kw1} and {kw3}? When would you choose one over the other?",
        "Explain the step-by-step process of {kw1}. What role does {kw2} play in this process?",
    ),
    "advanced": (
        "Critically evaluate the effectiveness of {kw1} in solving problems related to {kw2}. Discuss its limitations and propose improvements.",
        "Design a solution using {kw1} that addresses a complex problem involving {kw2} and {kw3}. Justify your design choices.",
        "Analyze the trade-offs between using {kw1} versus alternative approaches for {kw2}. Under what conditions does each excel?",
        "How would you optimize a system that relies on {kw1} for {kw2}? Consider scalability, efficiency, and maintainability.",
        "Discuss the theoretical foundations of {kw1}. How do these principles apply to real-world implementations involving {kw2}?",
        "Evaluate the impact of {kw1} on modern practices in {kw2}. What emerging trends could change this landscape?",
    ),
}

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass
class McqVariant:
    """Choices for a question rewritten as MCQ"""
    choices: List[str]
    correct_index: int
    explanation: str


def first_sentence(text: str) -> str:
    """First sentence of a passage, capped at 220 chars"""
    t = str(text or "").strip()
    if not t:
        return ""
    return (_SENTENCE_BOUNDARY.split(t)[0] or t)[:MCQ_FIRST_SENTENCE_CHARS]


def unique_choices(items: Sequence[str], limit: int) -> List[str]:
    """De-duplicate choices case-insensitively, keeping first spellings"""
    seen = set()
    out = []
    for item in items:
        value = str(item or "").strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        out.append(value)
        if len(out) >= limit:
            break
    return out


class QuestionBankSynthesizer:
    """
    Builds question banks from chunks and derives MCQ variants.

    Args:
        chunker: Used for per-chunk concept extraction
        max_chunks: Only the first max_chunks chunks produce questions
    """

    def __init__(self, chunker: Optional[TextChunker] = None, max_chunks: int = MAX_CHUNKS):
        self.chunker = chunker or TextChunker()
        self.max_chunks = max_chunks

    def generate_prompt(self, keywords: Sequence[str], difficulty: str, rng: SeededRandom) -> str:
        """Fill one of the tier's templates with up to three keywords"""
        kw = list(keywords[:3]) + list(KEYWORD_FALLBACKS[len(keywords[:3]):])
        templates = PROMPT_TEMPLATES.get(difficulty, PROMPT_TEMPLATES["advanced"])
        template = templates[rng.below(len(templates))]
        return template.format(kw1=kw[0], kw2=kw[1], kw3=kw[2])

    def generate_bank(self, chunks: List[TextChunk], seed: str) -> Dict[str, Question]:
        """
        Generate the subjective question bank.

        Two difficulty tiers are drawn per chunk (independently, so both may
        be the same tier) and one question is emitted per draw.

        Args:
            chunks: Chunks from TextChunker.chunk_text
            seed: Seed string; equal seeds give equal banks

        Returns:
            Ordered mapping of question id -> Question
        """
        rng = SeededRandom(seed)
        bank: Dict[str, Question] = {}

        for index, chunk in enumerate(chunks[:self.max_chunks]):
            concepts = self.chunker.extract_core_concepts(chunk.text)
            keywords = tuple(top_keywords(chunk.text, KEYWORDS_PER_CHUNK))

            primary = rng.choice(LEVELS)
            secondary = rng.choice(LEVELS)

            for difficulty in (primary, secondary):
                question_id = self._question_id(index, difficulty, rng, bank)
                bank[question_id] = Question(
                    id=question_id,
                    difficulty=difficulty,
                    prompt=self.generate_prompt(keywords, difficulty, rng),
                    reference=chunk.text,
                    keywords=keywords,
                    source_chunk_id=chunk.chunk_id,
                    summary=concepts.summary,
                    explanation=chunk.text
                )

        logger.info(f"[BANK] Generated {len(bank)} questions from {min(len(chunks), self.max_chunks)} chunks")
        return bank

    def _question_id(self, index: int, difficulty: str, rng: SeededRandom, bank: Dict[str, Question]) -> str:
        while True:
            question_id = f"q_{index + 1}_{difficulty}_{rng.below(QUESTION_ID_SUFFIX_RANGE)}"
            if question_id not in bank:
                return question_id

    def build_mcq(self, question: Question, pool: Sequence[Question], rng: SeededRandom) -> McqVariant:
        """
        Derive four shuffled choices for a question.

        Distractors are first sentences of other questions' references,
        sampled from the pool (at most 80 draws, at most 8 kept). Missing
        options are padded with a generic filler.
        """
        correct = first_sentence(question.reference)
        distractors: List[str] = []

        for _ in range(min(len(pool), MCQ_MAX_DRAWS)):
            candidate = pool[rng.below(len(pool))]
            if candidate.id == question.id:
                continue
            distractors.append(first_sentence(candidate.reference))
            if len(distractors) >= MCQ_MAX_DISTRACTORS:
                break

        choices = unique_choices([correct, *distractors], MCQ_CHOICE_COUNT)
        while len(choices) < MCQ_CHOICE_COUNT:
            choices.append(MCQ_FILLER_CHOICE)

        shuffled = rng.shuffle(choices)
        correct_index = shuffled.index(correct) if correct in shuffled else 0
        return McqVariant(choices=shuffled, correct_index=correct_index, explanation=question.reference)

    def to_mcq_prompt(self, question: Question, rng: SeededRandom) -> str:
        """Rewrite a prompt in MCQ framing"""
        keywords = question.keywords or tuple(top_keywords(question.reference or question.prompt, 3))
        return f"{MCQ_INSTRUCTION} {self.generate_prompt(keywords, question.difficulty, rng)}"

    def apply_question_format(self, questions: List[Question], question_format: str, seed: str) -> List[Question]:
        """
        Apply subjective / mcq / mixed formatting to an ordered flow.

        "mixed" makes even positions MCQ and odd positions subjective.
        Returns new Question objects; the input questions are untouched.
        """
        if not questions:
            return []

        rng = SeededRandom(seed)
        out = []
        for idx, question in enumerate(questions):
            mode = question_format
            if question_format == "mixed":
                mode = "mcq" if idx % 2 == 0 else "subjective"

            if mode == "mcq":
                variant = self.build_mcq(question, questions, rng)
                out.append(replace(
                    question,
                    type="mcq",
                    choices=tuple(variant.choices),
                    correct_index=variant.correct_index,
                    explanation=variant.explanation,
                    prompt=self.to_mcq_prompt(question, rng)
                ))
            else:
                out.append(replace(
                    question,
                    type="subjective",
                    choices=None,
                    correct_index=None,
                    explanation=question.reference
                ))
        return out


_synthesizer: Optional[QuestionBankSynthesizer] = None


def get_question_synthesizer() -> QuestionBankSynthesizer:
    """Get singleton synthesizer instance"""
    global _synthesizer
    if _synthesizer is None:
        _synthesizer = QuestionBankSynthesizer()
    return _synthesizer
