from __future__ import annotations

import logging

from querybridge.core.config import get_settings
from querybridge.core.errors import DescriberConfigError
from querybridge.providers.describer.base import TableDescriber
from querybridge.providers.describer.fake import FakeTableDescriber, NullTableDescriber
from querybridge.providers.describer.openai_chat import OpenAIChatDescriber


logger = logging.getLogger(__name__)


def get_table_describer() -> TableDescriber:
    settings = get_settings()
    provider = (settings.describer_provider or "fake").lower()

    if provider == "none":
        return NullTableDescriber()
    if provider == "fake":
        return FakeTableDescriber()
    if provider == "openai":
        return OpenAIChatDescriber()
    raise DescriberConfigError(f"unknown describer provider: {provider}")


def load_table_describer() -> TableDescriber:
    # A misconfigured provider degrades to fallback descriptions instead of blocking startup.
    try:
        return get_table_describer()
    except DescriberConfigError as exc:
        logger.warning("describer_unavailable error=%s", exc)
        return NullTableDescriber()
