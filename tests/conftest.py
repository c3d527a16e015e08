import pytest

from cip.api.container import Container, wire
from cip.classifier import TypeClassifier
from cip.config import Settings
from cip.models import CatalogEntry, Province

from fakes import InMemoryCatalog, InMemoryStore, RecordingNotifier, StaticProvinces


PROVINCES = [
    Province(
        id=1,
        name_en="Bangkok",
        name_local="กรุงเทพมหานคร",
        slug="bangkok",
        latitude=13.7563,
        longitude=100.5018,
    ),
    Province(
        id=2,
        name_en="Chiang Mai",
        name_local="เชียงใหม่",
        slug="chiang-mai",
        latitude=18.7883,
        longitude=98.9853,
    ),
    Province(
        id=3,
        name_en="Kanchanaburi",
        name_local="กาญจนบุรี",
        slug="kanchanaburi",
        latitude=14.0228,
        longitude=99.5328,
    ),
]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        classifier_ai_enabled=False,
        google_api_key=None,
        batch_item_delay_seconds=0.0,
        classifier_retry_sleep_seconds=0.0,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        [
            CatalogEntry(
                id="site-existing",
                name="Pha Tak Suea Campsite",
                address="Nong Khai 43000",
                latitude=17.9000,
                longitude=102.5000,
                phone="042-000-111",
                website="https://phataksuea.example",
            )
        ]
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def container(settings, store, catalog, notifier) -> Container:
    built = wire(
        settings,
        store=store,
        province_source=StaticProvinces(PROVINCES),
        catalog_reader=catalog,
        catalog_writer=catalog,
        classifier=TypeClassifier(settings=settings),
        notifier=notifier,
    )
    built.provinces.load()
    return built
