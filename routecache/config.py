from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    mapbox_access_token: str = ""
    directions_base_url: str = "https://api.mapbox.com/directions/v5/mapbox"
    styles_base_url: str = "https://api.mapbox.com/styles/v1"
    google_maps_api_key: str = ""
    geocoder_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    http_timeout: float = 15.0
    route_cache_maxsize: int = 100
    route_cache_ttl: int = 600
    route_cache_eviction_fraction: float = 0.2
    direct_route_ttl: int = 1800
    multi_stop_route_ttl: int = 600
    style_cache_maxsize: int = 50
    style_cache_ttl: int = 1800
    preload_enabled: bool = True
    preload_delay: float = 2.0
    coalesce_inflight_routes: bool = False
    fallback_speed_kmh: float = 25.0
    cors_origins: str = "*"
    log_format: str = "text"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
