import re
from typing import List

from sakubun.models.rubric import SegmentedSubmission, SentenceUnit

# Latin and full-width sentence-final punctuation; trailing punctuation stays with the sentence
SENTENCE_RE = re.compile(r"[^.!?。！？]+(?:[.!?。！？]+|$)")
PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")


def count_words(text: str) -> int:
    return len(text.split())


def normalize_text(text: str) -> str:
    '''
    줄바꿈/공백 정규화: CRLF → LF, 연속 공백/탭 → 한 칸, 줄 앞 공백 제거
    '''
    return re.sub(r"\n[ \t]+", "\n", re.sub(r"[ \t]+", " ", text.replace("\r\n", "\n").replace("\r", "\n"))).strip()


def split_paragraphs(text: str) -> List[str]:
    paragraphs = []
    for block in PARAGRAPH_BREAK_RE.split(text):
        para = " ".join(line.strip() for line in block.split("\n") if line.strip())
        if para:
            paragraphs.append(para)
    return paragraphs


def split_sentences(paragraph: str) -> List[str]:
    sentences = [s.strip() for s in SENTENCE_RE.findall(paragraph)]
    sentences = [s for s in sentences if s]
    # A paragraph with no sentence text (e.g. only punctuation) is still one unit
    return sentences or [paragraph]


def segment_submission(text: str) -> SegmentedSubmission:
    """Split a submission into numbered sentence units.

    Paragraphs are separated by blank lines; ids run S1..Sn across the whole
    submission and each paragraph is rendered as ``¶<p> [S<n>] sentence ...``.
    """
    normalized = normalize_text(text or "")
    units: List[SentenceUnit] = []
    chunks: List[str] = []

    for p_idx, para in enumerate(split_paragraphs(normalized), start=1):
        numbered = []
        for sentence in split_sentences(para):
            unit = SentenceUnit(id=len(units) + 1, paragraph=p_idx, text=sentence)
            units.append(unit)
            numbered.append(f"[{unit.label}] {sentence}")
        chunks.append(f"¶{p_idx} " + " ".join(numbered))

    return SegmentedSubmission(
        units=units,
        word_count=count_words(text or ""),
        numbered_text="\n\n".join(chunks),
    )
