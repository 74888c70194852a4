"""Test doubles shared across the suite (importable via the tests/ pythonpath entry)."""

from typing import Any

from rubrica.errors import NotFoundError
from rubrica.io.storage import StoredObject
from rubrica.models.criterion import Criterion

OWNER = "user-1"
OTHER_OWNER = "user-2"

ESSAY = (
    "The industrial revolution reshaped how people lived and worked. "
    "Factories drew workers from farms into fast-growing cities, and new "
    "machines changed the pace of production. "
) * 4


class FakeBlobStore:
    """Dict-backed blob store that records every call."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.listed: list[tuple[str, str]] = []
        self.downloads: list[tuple[str, str]] = []
        self.removed: list[tuple[str, str]] = []
        self.sizes: dict[tuple[str, str], int] = {}

    def put(self, bucket: str, path: str, data: bytes, *, listed_size: int | None = None) -> None:
        self.objects[(bucket, path)] = data
        if listed_size is not None:
            self.sizes[(bucket, path)] = listed_size

    async def list(self, bucket: str, directory: str) -> list[StoredObject]:
        self.listed.append((bucket, directory))
        prefix = f"{directory}/"
        out = []
        for (b, path), data in self.objects.items():
            name = path[len(prefix) :]
            if b == bucket and path.startswith(prefix) and "/" not in name:
                out.append(StoredObject(name=name, size=self.sizes.get((b, path), len(data))))
        return out

    async def download(self, bucket: str, path: str) -> bytes:
        self.downloads.append((bucket, path))
        try:
            return self.objects[(bucket, path)]
        except KeyError as ex:
            raise NotFoundError(f"{bucket}/{path}") from ex

    async def remove(self, bucket: str, path: str) -> None:
        self.removed.append((bucket, path))
        self.objects.pop((bucket, path), None)


class FakeAI:
    """Scripted AI backend; replies are set per test."""

    def __init__(self) -> None:
        self.criteria_reply: Any = None
        self.grade_reply: Any = None
        self.transcript: str = ""
        self.grade_error: BaseException | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def extract_criteria(self, *, rubric_text: str) -> Any:
        self.calls.append(("extract_criteria", {"rubric_text": rubric_text}))
        return self.criteria_reply

    async def grade(
        self, *, rubric_name: str, criteria: list[Criterion], submission_text: str
    ) -> Any:
        self.calls.append(
            (
                "grade",
                {
                    "rubric_name": rubric_name,
                    "criteria": criteria,
                    "submission_text": submission_text,
                },
            )
        )
        if self.grade_error is not None:
            raise self.grade_error
        return self.grade_reply

    async def transcribe(self, *, data_url: str) -> str:
        self.calls.append(("transcribe", {"data_url": data_url}))
        return self.transcript

    def called(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for n, kwargs in self.calls if n == name]


def criterion(cid: str, weight: float, name: str | None = None) -> dict[str, Any]:
    return {
        "id": cid,
        "name": name or f"Criterion {cid}",
        "description": f"What {cid} measures",
        "weight": weight,
        "category": "Content",
    }


def grading_reply(*scores: tuple[str, float], confidence: str = "high") -> dict[str, Any]:
    return {
        "criteria_scores": [
            {"criterion_id": cid, "score": score, "rationale": f"{cid} rationale", "evidence": []}
            for cid, score in scores
        ],
        "strengths": ["Clear structure"],
        "improvements": ["Cite sources"],
        "confidence": confidence,
    }


