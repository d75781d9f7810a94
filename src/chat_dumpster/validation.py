"""Post-condition check of a produced dumpster."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from chat_dumpster.assets.index import ASSETS_FILENAME

logger = logging.getLogger(__name__)

CHATS_DIRNAME = 'chats'
MEDIA_DIRNAME = 'media'


@dataclass
class DumpsterValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class DumpsterValidator:
    """Checks that a dumpster directory has the expected shape.

    Errors: no ``chats/`` directory, no ``.json`` file in it, no ``media/``
    directory. Warnings: ``assets.json`` missing or not a JSON object.
    """

    def validate(self, dumpster_dir: Path) -> DumpsterValidationResult:
        dumpster_dir = Path(dumpster_dir)
        errors: List[str] = []
        warnings: List[str] = []

        chats_dir = dumpster_dir / CHATS_DIRNAME
        if not chats_dir.is_dir():
            errors.append(f"Missing {CHATS_DIRNAME}/ directory")
        elif not any(p.suffix == '.json' and p.is_file() for p in chats_dir.iterdir()):
            errors.append(f"No chat files in {CHATS_DIRNAME}/")

        if not (dumpster_dir / MEDIA_DIRNAME).is_dir():
            errors.append(f"Missing {MEDIA_DIRNAME}/ directory")

        assets_file = dumpster_dir / ASSETS_FILENAME
        if not assets_file.is_file():
            warnings.append(f"Missing {ASSETS_FILENAME}")
        else:
            try:
                with open(assets_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    warnings.append(f"{ASSETS_FILENAME} is not a JSON object")
            except (OSError, ValueError) as e:
                warnings.append(f"Invalid {ASSETS_FILENAME}: {e}")

        for message in warnings:
            logger.warning(f"Dumpster {dumpster_dir.name}: {message}")

        return DumpsterValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
        )
