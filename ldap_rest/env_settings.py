from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field

# Фиксированные параметры протокола, не настраиваются через окружение.
LDAP_PROTOCOL_VERSION = 3
LDAP_AUTO_REFERRALS = False


class DirectorySettings(BaseSettings):
    host: str = Field(..., alias="LDAP_HOST")
    port: int = Field(0, alias="LDAP_PORT")  # 0 -> 636 (LDAPS) / 389
    base_dn: str = Field(..., alias="LDAP_BASE_DN")

    use_ssl: bool = Field(False, alias="LDAP_USE_SSL")
    starttls: bool = Field(False, alias="LDAP_STARTTLS")
    ignore_cert_errors: bool = Field(False, alias="LDAP_IGNORE_CERT_ERRORS")
    ca_cert_file: str = Field("", alias="LDAP_CA_CERT_FILE")
    connect_timeout_s: float = Field(10.0, alias="LDAP_CONNECT_TIMEOUT")

    cors_allowed_origins: str = Field("", alias="CORS_ALLOWED_ORIGINS")  # ',' separated

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("", alias="LOG_DIR")
    log_retention_days: int = Field(30, alias="LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def resolved_port(self) -> int:
        if self.port > 0:
            return self.port
        return 636 if self.use_ssl else 389

    @property
    def protocol_version(self) -> int:
        return LDAP_PROTOCOL_VERSION

    @property
    def auto_referrals(self) -> bool:
        return LDAP_AUTO_REFERRALS

    @property
    def cors_origins(self) -> list[str]:
        return [x.strip() for x in (self.cors_allowed_origins or "").split(",") if x.strip()]


@lru_cache(maxsize=1)
def get_env() -> DirectorySettings:
    return DirectorySettings()
