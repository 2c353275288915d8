"""
공통 모듈 패키지
이미지 업로드 함수의 공유 설정 및 클라이언트
"""

__version__ = "1.0.0"
__author__ = "Image Upload Team"

# 주요 클래스 및 함수 익스포트
from .config import UploadConfig, load_config, get_secrets_provider, ConfigurationError
from .cloudinary_client import (
    CloudinaryUploader,
    CloudinaryUploadError,
    UploadRejectedError,
    UploadTransportError
)

__all__ = [
    'UploadConfig',
    'load_config',
    'get_secrets_provider',
    'ConfigurationError',
    'CloudinaryUploader',
    'CloudinaryUploadError',
    'UploadRejectedError',
    'UploadTransportError'
]
