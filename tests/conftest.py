from pathlib import Path
import sys
from unittest import mock

import pytest

# プロジェクトルートを import パスに追加(pytest 実行場所に依存しないため)
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from common.card_schema import Card  # noqa: E402
from config.environment import reset_env_config_cache  # noqa: E402
from config.settings import get_settings  # noqa: E402
from core.catalog import Catalog  # noqa: E402

# ========== Test Isolation: settings / env caches ==========


@pytest.fixture(autouse=True, scope="function")
def reset_config_caches():
    """
    設定キャッシュ (lru_cache) がテスト間で漏れないよう、各テスト前後でクリアする。

    - get_settings(): config.yaml / 環境変数から構築
    - get_env_config(): COMPACT_LOGS / FILTER_DEBUG など
    """
    get_settings.cache_clear()
    reset_env_config_cache()
    mock.patch.stopall()

    yield

    get_settings.cache_clear()
    reset_env_config_cache()
    mock.patch.stopall()


# ========== Minimal card / catalog fixtures ==========

TEMPLATE_HEADERS = [
    "Pillar",
    "Category",
    "Item",
    "UCM DMS Weightage",
    "UCM status",
    "WebUI status",
    "Campaign",
    "Campaign creation",
    "Existing campaign",
    "Notes",
    "DMS status",
    "Owner GPM",
    "Can apply to account level",
    "Already apply to Search campaign",
]


def make_row(**overrides: str) -> dict[str, str]:
    """テンプレート 1 行分の dict。未指定の列は無難な値で埋める。"""
    row = {
        "Pillar": "Ads",
        "Category": "Health check",
        "Item": "Responsive search ads",
        "UCM DMS Weightage": "5%",
        "UCM status": "Included in UCM DMS",
        "WebUI status": "WebUI Ready",
        "Campaign": "Search",
        "Campaign creation": "Yes",
        "Existing campaign": "Yes",
        "Notes": "",
        "DMS status": "Live",
        "Owner GPM": "Alice",
        "Can apply to account level": "Can apply to account level",
        "Already apply to Search campaign": "-",
    }
    row.update(overrides)
    return row


def make_card(**overrides: str) -> Card:
    return Card.from_row(make_row(**overrides))


@pytest.fixture
def row_factory():
    """make_row を返すファクトリー。"""
    return make_row


@pytest.fixture
def card_factory():
    """make_card を返すファクトリー。"""
    return make_card


@pytest.fixture
def sample_rows() -> list[dict[str, str]]:
    return [
        make_row(Item="RSA strength", Pillar="Ads", Category="Health check", **{"Owner GPM": "Alice"}),
        make_row(Item="Image assets", Pillar="Ads", Category="Feature adoption", **{"Owner GPM": "Bob"}),
        make_row(
            Item="Broad match",
            Pillar="Targeting",
            Category="Tactic 2",
            **{
                "Owner GPM": "Alice",
                "UCM status": "Not in UCM DMS",
                "WebUI status": "WebUI Partially Ready",
                "Can apply to account level": "-",
            },
        ),
        make_row(
            Item="Conversion tracking",
            Pillar="Measurement",
            Category="Health check",
            Campaign="All campaigns",
            **{
                "Owner GPM": "Carol",
                "DMS status": "Beta",
                "Already apply to Search campaign": "Already apply to Search campaign",
            },
        ),
        make_row(Item="Account review", Pillar="Other", Category="Other", **{"Owner GPM": ""}),
    ]


@pytest.fixture
def sample_catalog(sample_rows) -> Catalog:
    return Catalog.from_rows(TEMPLATE_HEADERS, sample_rows)


@pytest.fixture
def template_path() -> Path:
    return ROOT / "data" / "template.csv"
