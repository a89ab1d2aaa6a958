from pastebox.config import Settings
from pastebox.database import Base, make_engine, make_session_factory
from pastebox.services.paste_service import PasteService
from pastebox.services.rate_limiter import build_rate_limiter
from pastebox.storage import MetadataStore, build_blob_store


# one per process lifetime: the API lifespan or a single Celery task run
class Runtime:
    def __init__(self, settings: Settings, engine, blobs, rate_limiter, **service_options):
        self.settings = settings
        self.engine = engine
        self.blobs = blobs
        self.rate_limiter = rate_limiter
        self.metadata = MetadataStore(make_session_factory(engine))
        self.pastes = PasteService(
            self.metadata,
            blobs,
            max_content_chars=settings.max_content_chars,
            **service_options,
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, create_tables: bool = False, **service_options) -> "Runtime":
        engine = make_engine(settings.database_url, settings.storage_timeout_seconds)
        if create_tables:
            Base.metadata.create_all(bind=engine)
        return cls(
            settings,
            engine,
            build_blob_store(settings),
            build_rate_limiter(settings),
            **service_options,
        )

    def close(self) -> None:
        self.rate_limiter.close()
        self.blobs.close()
        self.engine.dispose()

    def __enter__(self) -> "Runtime":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
