"""
Load table rules from ``.env`` files and the environment.

Keys (all optional, defaults come from ``TableRules``)::

    BJ_NUM_DECKS=6
    BJ_PENETRATION=0.75
    BJ_HIT_SOFT_17=true
    BJ_PEEK_FOR_BLACKJACK=true
    BJ_BLACKJACK_PAYOUT=3:2
    BJ_MAX_RESPLITS=3
    BJ_RESPLIT_ACES=false
    BJ_DOUBLE_AFTER_SPLIT=true
    BJ_LATE_SURRENDER=true
    BJ_INSURANCE_AVAILABLE=true
    BJ_COUNTING_SYSTEM=hi-lo
    BJ_MID_SHOE_START=true
"""

from pathlib import Path
from typing import Dict, Mapping, Optional, Union
import logging
import os

from dotenv import dotenv_values
from pydantic import ValidationError

from errors import ConfigurationError
from schemas import TableRules

log = logging.getLogger(__name__)

PREFIX = "BJ_"


def _load_env_from_files(env_file: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """
    Read variables from:
    - <this module's directory>/.env
    - <working directory>/.env
    - ``env_file``, if given
    Later files win.  Nothing is written to os.environ.
    """
    here = Path(__file__).parent
    candidates = [here / ".env", Path.cwd() / ".env"]
    if env_file is not None:
        explicit = Path(env_file).expanduser()
        if not explicit.exists():
            raise ConfigurationError(f"env file not found: {explicit}")
        candidates.append(explicit)
    env: Dict[str, str] = {}
    seen = set()
    for p in candidates:
        p = p.resolve()
        if p in seen or not p.exists():
            continue
        seen.add(p)
        env.update({k: v for k, v in dotenv_values(p).items() if v is not None})
        log.debug("loaded table rules from %s", p)
    return env


def _rules_fields(values: Mapping[str, str]) -> Dict[str, str]:
    fields = {}
    for key, value in values.items():
        if not key.startswith(PREFIX):
            continue
        name = key[len(PREFIX):].lower()
        if name not in TableRules.model_fields:
            log.warning("ignoring unknown table rule %s", key)
            continue
        fields[name] = value.strip()
    return fields


def load_table_rules(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TableRules:
    """
    Build ``TableRules`` from ``.env`` files overlaid with ``BJ_*`` environment variables.

    :raises ConfigurationError: if a value does not validate.
    """
    values = _load_env_from_files(env_file)
    values.update(os.environ if environ is None else environ)
    try:
        return TableRules(**_rules_fields(values))
    except ValidationError as exc:
        raise ConfigurationError(f"invalid table rules: {exc}") from exc
