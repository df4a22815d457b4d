"""Read-only prompt catalog that workflow steps may reference by id."""

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class Prompt(BaseModel):
    """A prompt template record owned by the prompt library."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str
    description: str = ""
    content: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    is_template: bool = False


class PromptCatalog:
    """Ordered, read-only collection of prompts.

    The workflow core treats prompt ids as opaque; the catalog exists so
    callers can show what a step points at.
    """

    def __init__(self, prompts: Iterable[Prompt] = ()):
        self._prompts = tuple(prompts)
        self._by_id = {}
        for prompt in self._prompts:
            if prompt.id in self._by_id:
                logger.warning(f"Duplicate prompt id in catalog: {prompt.id} (keeping first)")
                continue
            self._by_id[prompt.id] = prompt

    def __iter__(self) -> Iterator[Prompt]:
        return iter(self._prompts)

    def __len__(self) -> int:
        return len(self._prompts)

    def __contains__(self, prompt_id: object) -> bool:
        return prompt_id in self._by_id

    def get(self, prompt_id: Optional[str]) -> Optional[Prompt]:
        if prompt_id is None:
            return None
        return self._by_id.get(prompt_id)

    @classmethod
    def from_file(cls, path: Path) -> "PromptCatalog":
        """Load a catalog from a YAML or JSON file.

        The file holds either a list of prompt records or a mapping with a
        ``prompts`` list.
        """
        text = Path(path).read_text()
        if Path(path).suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
        if isinstance(data, dict):
            data = data.get("prompts", [])
        records = data or []
        catalog = cls(Prompt.model_validate(record) for record in records)
        logger.debug(f"Loaded {len(catalog)} prompts from {path}")
        return catalog
