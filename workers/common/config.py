import os
from dataclasses import dataclass
from typing import Optional, Dict, Any, Mapping
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.parameters import (
    SecretsProvider,
    GetParameterError,
    TransformParameterError
)
from .cloudinary_client import DEFAULT_API_BASE_URL

logger = Logger(service="upload-config")

# 5MB 파일에 대한 대략적인 임계값 (인코딩된 Data URL 문자열 길이 기준)
DEFAULT_MAX_IMAGE_SIZE = 5 * 1024 * 1024
SECRET_MAX_AGE = 300

class ConfigurationError(Exception):
    """설정 로드 관련 예외"""
    pass

_secrets_provider = None

def get_secrets_provider() -> SecretsProvider:
    """싱글톤 SecretsProvider 반환 (max_age 캐시가 실행 컨텍스트 동안 유지됨)"""
    global _secrets_provider
    if _secrets_provider is None:
        _secrets_provider = SecretsProvider()
    return _secrets_provider

@dataclass(frozen=True)
class UploadConfig:
    """업로드 핸들러 실행 설정"""
    cloud_name: str
    upload_preset: str
    max_image_size: int = DEFAULT_MAX_IMAGE_SIZE
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: Optional[float] = None

def _parse_number(environ: Mapping[str, str], name: str, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} 값이 올바르지 않음: {raw!r}")

def _load_secret(secret_name: str, provider: Optional[SecretsProvider]) -> Dict[str, Any]:
    """Secrets Manager에서 Cloudinary 설정 로드"""
    provider = provider or get_secrets_provider()
    try:
        secret_value = provider.get(secret_name, transform='json', max_age=SECRET_MAX_AGE)
    except TransformParameterError as e:
        logger.error(f"시크릿 JSON 파싱 실패: {secret_name} - {e}")
        raise ConfigurationError(f"JSON 형식 오류: {secret_name}")
    except GetParameterError as e:
        logger.error(f"시크릿 로드 실패: {secret_name} - {e}")
        raise ConfigurationError(f"시크릿 로드 실패: {secret_name}")

    if not isinstance(secret_value, dict):
        raise ConfigurationError(f"시크릿은 JSON 객체여야 함: {secret_name}")
    return secret_value

def load_config(
    environ: Optional[Mapping[str, str]] = None,
    secrets_provider: Optional[SecretsProvider] = None
) -> UploadConfig:
    """
    환경 변수(및 선택적으로 Secrets Manager)에서 업로드 설정 생성
    cloud_name / upload_preset 누락은 경고만 남기고 Cloudinary 측 거부로 드러남
    """
    environ = os.environ if environ is None else environ

    cloud_name = environ.get('CLOUDINARY_CLOUD_NAME', '')
    upload_preset = environ.get('CLOUDINARY_UPLOAD_PRESET', '')

    secret_name = environ.get('CLOUDINARY_SECRET_NAME')
    if secret_name:
        secret_value = _load_secret(secret_name, secrets_provider)
        cloud_name = secret_value.get('cloud_name') or cloud_name
        upload_preset = secret_value.get('upload_preset') or upload_preset
        logger.info("시크릿에서 Cloudinary 설정 로드 완료")

    if not cloud_name:
        logger.warning("CLOUDINARY_CLOUD_NAME이 설정되지 않았습니다.")
    if not upload_preset:
        logger.warning("CLOUDINARY_UPLOAD_PRESET이 설정되지 않았습니다.")

    max_image_size = _parse_number(environ, 'MAX_IMAGE_SIZE', int)
    if max_image_size is not None and max_image_size <= 0:
        raise ConfigurationError(f"MAX_IMAGE_SIZE는 양수여야 함: {max_image_size}")

    timeout = _parse_number(environ, 'CLOUDINARY_UPLOAD_TIMEOUT', float)

    return UploadConfig(
        cloud_name=cloud_name,
        upload_preset=upload_preset,
        max_image_size=max_image_size or DEFAULT_MAX_IMAGE_SIZE,
        api_base_url=environ.get('CLOUDINARY_API_BASE_URL') or DEFAULT_API_BASE_URL,
        timeout=timeout
    )
