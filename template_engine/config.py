from pydantic_settings import BaseSettings
from typing import Dict, Literal


class Settings(BaseSettings):
    # App
    environment: Literal["development", "test", "production"] = "development"
    log_level: str = "INFO"

    # Template conventions
    placeholder_phrase: str = "test document"
    identity_attribute: str = "data-internal-id"

    # Text layout
    default_font_family: str = "Arial"
    default_font_size: float = 16.0
    font_files: str = ""  # "Arial=/fonts/arial.ttf,Roboto=/fonts/Roboto-Regular.ttf"
    line_gap_ratio: float = 0.2

    # Annotation detection
    annotation_tolerance: int = 60
    annotation_alpha_threshold: int = 50
    annotation_min_green_pixels: int = 20
    annotation_endpoint_fraction: float = 0.1

    class Config:
        env_file = ".env"
        case_sensitive = False

    def font_file_map(self) -> Dict[str, str]:
        """Parse ``font_files`` into a family -> path mapping."""
        mapping: Dict[str, str] = {}
        for entry in self.font_files.split(","):
            if "=" not in entry:
                continue
            family, path = entry.split("=", 1)
            if family.strip() and path.strip():
                mapping[family.strip()] = path.strip()
        return mapping


settings = Settings()
