import json
from pathlib import Path
from typing import Dict, List, Optional

REQUIRED_KEYS = ["instructions", "label_template"]


class PromptLoader:
    """Load and manage versioned grading prompts."""

    def __init__(self, prompts_dir: Optional[str] = None, version: str = "v1.0.0") -> None:
        """
        Initialize the prompt loader.

        - If `prompts_dir` is None, resolve to `<package_root>/prompts` where
          package_root is the `edugrade` package directory.
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
        self._prompts_cache: Dict[str, str] = {}
        self._load_prompts()

    def _load_prompts(self) -> None:
        """Load grading.json from the versioned directory."""
        version_dir = self.prompts_dir / self.version

        if not version_dir.exists():
            raise FileNotFoundError(
                f"Prompts directory not found: {version_dir}. "
                f"Please ensure the prompts are properly set up in {version_dir}"
            )

        json_file = version_dir / "grading.json"
        if not json_file.exists():
            raise FileNotFoundError(f"Required prompt file not found: {json_file}")

        try:
            with open(json_file, "r", encoding="utf-8") as file:
                prompts_data: Dict[str, str] = json.load(file)
        except (OSError, json.JSONDecodeError) as exc:
            raise RuntimeError(f"Error loading prompts from {json_file}: {exc}") from exc

        for key in REQUIRED_KEYS:
            value = prompts_data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Missing prompt '{key}' in {json_file}")
        self._prompts_cache = prompts_data

    def load_prompt(self, key: str = "instructions") -> str:
        if key not in self._prompts_cache:
            raise ValueError(
                f"No prompt found for key: '{key}'. "
                f"Available keys: {self.get_available_keys()}"
            )
        return self._prompts_cache[key]

    @property
    def instructions(self) -> str:
        return self.load_prompt("instructions")

    def document_label(self, label: str, index: int) -> str:
        """Label preceding a document part; `index` is 1-based."""
        return self.load_prompt("label_template").format(label=label, index=index)

    def get_available_keys(self) -> List[str]:
        return list(self._prompts_cache.keys())
