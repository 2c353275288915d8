import requests
from typing import Optional, Dict, Any
from aws_lambda_powertools import Logger

logger = Logger(service="cloudinary-client")

DEFAULT_API_BASE_URL = "https://api.cloudinary.com"

class CloudinaryUploadError(Exception):
    """Cloudinary 업로드 관련 예외"""
    pass

class UploadTransportError(CloudinaryUploadError):
    """네트워크 오류 또는 응답 해석 실패"""
    pass

class UploadRejectedError(CloudinaryUploadError):
    """Cloudinary가 업로드를 거부했거나 secure_url이 없는 경우"""

    def __init__(self, message: str, status_code: Optional[int] = None, provider_message: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message

class CloudinaryUploader:
    """Cloudinary unsigned 업로드 클라이언트"""

    def __init__(
        self,
        cloud_name: str,
        upload_preset: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        timeout: Optional[float] = None
    ):
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.api_base_url = api_base_url.rstrip('/')
        self.timeout = timeout

    @property
    def upload_url(self) -> str:
        return f"{self.api_base_url}/v1_1/{self.cloud_name}/image/upload"

    def _build_form(self, data_url: str) -> Dict[str, Any]:
        # 파일명 없는 multipart 필드
        return {
            'file': (None, data_url),
            'upload_preset': (None, self.upload_preset)
        }

    def upload(self, data_url: str) -> str:
        """Data URL을 업로드하고 secure_url 반환"""
        try:
            response = requests.post(
                self.upload_url,
                files=self._build_form(data_url),
                timeout=self.timeout
            )
            result = response.json()
        except requests.RequestException as e:
            logger.error(f"Cloudinary 요청 실패: {e}")
            raise UploadTransportError(f"요청 실패: {e}")
        except ValueError as e:
            logger.error(f"Cloudinary 응답 JSON 파싱 실패: {e}")
            raise UploadTransportError(f"응답 파싱 실패: {e}")

        secure_url = result.get('secure_url') if isinstance(result, dict) else None

        if not response.ok or not secure_url:
            provider_message = None
            if isinstance(result, dict) and isinstance(result.get('error'), dict):
                provider_message = result['error'].get('message')
            logger.error(
                "Cloudinary 업로드 실패",
                extra={'status_code': response.status_code, 'provider_message': provider_message}
            )
            raise UploadRejectedError(
                f"업로드 거부됨 [{response.status_code}]",
                status_code=response.status_code,
                provider_message=provider_message
            )

        logger.info(
            "Cloudinary 업로드 성공",
            extra={'public_id': result.get('public_id'), 'bytes': result.get('bytes')}
        )
        return secure_url
