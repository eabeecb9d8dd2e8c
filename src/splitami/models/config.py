"""Configuration models."""

from pydantic import BaseModel, Field, validator


class AwsConfig(BaseModel):
    """Cloud provider settings."""
    metadata_url: str = Field(default="http://169.254.169.254/latest/meta-data")
    metadata_timeout: float = Field(default=2.0, gt=0)
    poll_interval: float = Field(default=15, gt=0)
    wait_timeout: float = Field(default=3600, gt=0)
    # Attachment reports in-use before the device node is usable.
    attach_settle_delay: float = Field(default=30, ge=0)
    volume_type: str = Field(default="gp2")

    @validator("metadata_url")
    def strip_trailing_slash(cls, v):
        """Normalize the metadata base URL."""
        return v.rstrip("/")


class FilesystemConfig(BaseModel):
    """Local filesystem and device naming settings."""
    fs_type: str = Field(default="ext4")
    scratch_dir: str = Field(default="/newami")
    local_device_prefix: str = Field(default="/dev/xvd")
    mapping_device_prefix: str = Field(default="/dev/sd")
    fstab_device_prefix: str = Field(default="/dev/xvd")
    fstab_path: str = Field(default="etc/fstab")

    @validator("scratch_dir", "local_device_prefix")
    def validate_absolute(cls, v):
        """Require absolute paths."""
        if not v.startswith("/"):
            raise ValueError(f"Path must be absolute: {v}")
        return v

    @validator("fstab_path")
    def validate_relative(cls, v):
        """fstab location is relative to the root volume mount."""
        return v.lstrip("/")


class PublishConfig(BaseModel):
    """Visibility of the produced snapshots and image."""
    public_snapshots: bool = Field(default=False)
    public_image: bool = Field(default=False)


class NamingConfig(BaseModel):
    """Templates for the new image's name and description."""
    name_template: str = Field(default="{{ source_name }}-split-{{ timestamp }}")
    description_template: str = Field(
        default="{{ source_description }} (split from {{ source_id }}: {{ paths }})"
    )


class SplitConfig(BaseModel):
    """Main configuration model."""
    log_level: str = Field(default="INFO")
    cleanup_on_failure: bool = Field(default=False)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    filesystem: FilesystemConfig = Field(default_factory=FilesystemConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    class Config:
        """Pydantic config."""
        extra = "ignore"
