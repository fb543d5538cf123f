import json
from pathlib import Path
from typing import Dict, List, Optional, Union

PromptSection = Union[str, List[str]]


class PromptLoader:
    """Load and manage versioned prompt templates for feedback generation."""

    REQUIRED_TASKS = (
        "expression",
        "content",
        "expression_improvements",
        "content_improvements",
        "requirement",
        "followup",
    )

    def __init__(self, prompts_dir: Optional[str] = None, version: str = "v1.0.0") -> None:
        """
        Initialize the prompt loader.

        - If `prompts_dir` is None, resolve to `<package_root>/prompts` where
          package_root is the `sakubun` directory.
        - If `prompts_dir` is provided and not found relative to the CWD,
          also try resolving it relative to the package root.
        """
        package_root = Path(__file__).resolve().parents[1]

        if prompts_dir is None:
            self.prompts_dir: Path = package_root / "prompts"
        else:
            candidate = Path(prompts_dir)
            self.prompts_dir = candidate if candidate.exists() else (package_root / candidate)

        self.version = version
        self._prompts_cache: Dict[str, Dict[str, str]] = {}
        self._load_prompts()

    def _load_prompts(self) -> None:
        """Load all prompt templates from the versioned directory."""
        version_dir = self.prompts_dir / self.version

        if not version_dir.exists():
            raise FileNotFoundError(
                f"Prompts directory not found: {version_dir}. "
                f"Please ensure the prompts are properly set up in {version_dir}"
            )

        for task in self.REQUIRED_TASKS:
            json_file = version_dir / f"{task}.json"
            if not json_file.exists():
                raise FileNotFoundError(f"Required prompt file not found: {json_file}")

            try:
                with open(json_file, "r", encoding="utf-8") as file:
                    raw: Dict[str, PromptSection] = json.load(file)
            except (OSError, json.JSONDecodeError) as exc:
                raise RuntimeError(f"Error loading prompts from {json_file}: {exc}") from exc

            if "system" not in raw:
                raise ValueError(f"Missing section 'system' in {json_file}")

            # Sections are stored as lists of lines in the files
            self._prompts_cache[task] = {
                name: "\n".join(value) if isinstance(value, list) else str(value)
                for name, value in raw.items()
            }

    def load_prompt(self, task: str, section: str = "system") -> str:
        """Return one section of a task's template as plain text."""
        if task not in self._prompts_cache:
            available_tasks = list(self._prompts_cache.keys())
            raise ValueError(
                f"No prompts found for task: '{task}'. "
                f"Available tasks: {available_tasks}"
            )

        sections = self._prompts_cache[task]
        if section not in sections:
            raise ValueError(
                f"No section '{section}' in prompt '{task}'. "
                f"Available sections: {list(sections.keys())}"
            )
        return sections[section]

    def has_section(self, task: str, section: str) -> bool:
        return section in self._prompts_cache.get(task, {})
