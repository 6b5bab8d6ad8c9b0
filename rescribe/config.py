"""
Settings loading and component wiring.

Settings come from rescribe/defaults.yaml (environment read through ${oc.env:...}
after .env is loaded), optionally merged with a user YAML file and dotlist
overrides such as "rendering.timeout_s=30".
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import httpx
from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

from rescribe.contexts.generation import GenerationChain, ProviderRole, build_provider
from rescribe.contexts.publishing import (
    ArtifactPublisher,
    CleanupQueue,
    LocalStorage,
    StorageBackend,
    SupabaseStorage,
)
from rescribe.pipeline import ResumePipeline
from rescribe.utils.retry import Sleeper

load_dotenv()

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Sequence[str]] = None,
) -> DictConfig:
    """
    Load and resolve settings.

    Args:
        config_path: Optional YAML file merged over the defaults
        overrides: Optional dotlist entries merged last

    Returns:
        Fully resolved DictConfig
    """
    settings = OmegaConf.load(DEFAULTS_PATH)
    if config_path is not None:
        settings = OmegaConf.merge(settings, OmegaConf.load(config_path))
    if overrides:
        settings = OmegaConf.merge(settings, OmegaConf.from_dotlist(list(overrides)))
    OmegaConf.resolve(settings)
    return settings


def build_chain(settings: DictConfig, http_client: Optional[httpx.AsyncClient] = None) -> GenerationChain:
    """Build the provider chain; the first configured entry is primary."""
    gen = settings.generation
    defaults = {"temperature": gen.temperature, "max_tokens": gen.max_tokens, "timeout_s": gen.timeout_s}

    providers = []
    for index, provider_cfg in enumerate(gen.providers):
        role = ProviderRole.PRIMARY if index == 0 else ProviderRole.SECONDARY
        providers.append(build_provider(provider_cfg, role, defaults, http_client=http_client))

    return GenerationChain(providers)


def build_storage(settings: DictConfig, http_client: Optional[httpx.AsyncClient] = None) -> StorageBackend:
    """
    Build the configured storage backend.

    Raises:
        ValueError: For an unknown backend or incomplete Supabase settings
    """
    pub = settings.publishing
    backend = str(pub.backend).lower()

    if backend == "supabase":
        return SupabaseStorage(
            url=pub.supabase.url,
            service_key=pub.supabase.service_key,
            timeout=float(pub.supabase.timeout_s),
            http_client=http_client,
        )
    if backend == "local":
        return LocalStorage(pub.local.root, public_base_url=pub.local.public_base_url)

    raise ValueError(f"Unknown storage backend: {backend}. Use 'supabase' or 'local'")


def build_pipeline(
    settings: Optional[DictConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sleep: Optional[Sleeper] = None,
) -> ResumePipeline:
    """
    Wire a ResumePipeline from settings.

    Args:
        settings: Resolved settings (default: load_settings())
        http_client: Shared client for providers and Supabase (tests inject mocks)
        sleep: Backoff sleep for the publisher (tests inject a no-op)
    """
    settings = settings if settings is not None else load_settings()
    pub = settings.publishing
    rendering = settings.rendering

    publisher = ArtifactPublisher(
        build_storage(settings, http_client),
        bucket=pub.bucket,
        file_name=pub.file_name,
        max_attempts=int(pub.max_attempts),
        base_delay=float(pub.base_delay_s),
        sleep=sleep,
    )

    return ResumePipeline(
        chain=build_chain(settings, http_client),
        publisher=publisher,
        scratch_root=rendering.scratch_root,
        compiler=rendering.compiler,
        compile_timeout=float(rendering.timeout_s),
        max_output_bytes=int(rendering.max_output_bytes),
        max_upload_bytes=int(settings.intake.max_upload_bytes),
        keep_artifacts=bool(rendering.keep_artifacts),
        cleanup_queue=CleanupQueue(publisher) if pub.cleanup else None,
    )
