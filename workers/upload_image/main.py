import json
import sys
from typing import Dict, Any
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEvent
from aws_lambda_powertools.utilities.typing import LambdaContext

# Lambda 레이어 경로 설정
sys.path.append('/opt/python')

from common.config import load_config, ConfigurationError, DEFAULT_MAX_IMAGE_SIZE
from common.cloudinary_client import CloudinaryUploader, UploadRejectedError

logger = Logger(service="upload-image")
tracer = Tracer(service="upload-image")
metrics = Metrics(namespace="ImageUpload", service="upload-image")

DATA_URL_PREFIX = 'data:image/'

METHOD_NOT_ALLOWED = 'Method Not Allowed'
INVALID_JSON = 'Invalid JSON in request body'
MISSING_IMAGE_DATA = 'Missing imageData'
INVALID_IMAGE_FORMAT = 'Invalid image data format'
IMAGE_TOO_LARGE = 'Image is too large'
UPLOAD_FAILED = 'Image upload failed'
SERVER_ERROR = 'Server error during image upload'

class ImageDataValidationError(Exception):
    """클라이언트 입력 오류 (4xx 응답으로 변환)"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

def text_response(status_code: int, body: str) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'text/plain'},
        'body': body
    }

def json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(payload)
    }

def _reject_constant(token: str):
    # NaN, Infinity, -Infinity는 표준 JSON이 아님
    raise ValueError(f"허용되지 않는 JSON 상수: {token}")

def check_method(event: APIGatewayProxyEvent) -> None:
    if event.get('httpMethod') != 'POST':
        raise ImageDataValidationError(405, METHOD_NOT_ALLOWED)

def parse_body(event: APIGatewayProxyEvent) -> Any:
    """요청 본문을 JSON으로 파싱 (base64 인코딩된 본문은 먼저 디코딩)"""
    try:
        return json.loads(event.decoded_body, parse_constant=_reject_constant)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"요청 본문 JSON 파싱 실패: {e}")
        raise ImageDataValidationError(400, INVALID_JSON)

def validate_image_data(payload: Any, max_image_size: int = DEFAULT_MAX_IMAGE_SIZE) -> str:
    """
    imageData 필드 검증 후 Data URL 반환
    크기 검사는 디코딩된 바이트가 아니라 인코딩된 문자열 길이 기준
    """
    image_data = payload.get('imageData') if isinstance(payload, dict) else None

    if not image_data or not isinstance(image_data, str):
        logger.error("imageData 누락 또는 잘못된 타입")
        raise ImageDataValidationError(400, MISSING_IMAGE_DATA)

    if not image_data.startswith(DATA_URL_PREFIX):
        logger.error("imageData가 유효한 Data URL 형식이 아닙니다.")
        raise ImageDataValidationError(400, INVALID_IMAGE_FORMAT)

    if len(image_data) > max_image_size:
        logger.error(f"이미지 데이터 크기 제한 초과: {len(image_data)} > {max_image_size}")
        raise ImageDataValidationError(400, IMAGE_TOO_LARGE)

    return image_data

class UploadHandler:
    """요청 검증 후 Cloudinary로 전달하는 HTTP 핸들러"""

    def __init__(self, uploader: CloudinaryUploader, max_image_size: int = DEFAULT_MAX_IMAGE_SIZE):
        self.uploader = uploader
        self.max_image_size = max_image_size

    @tracer.capture_method
    def forward(self, image_data: str) -> str:
        return self.uploader.upload(image_data)

    def handle(self, event: APIGatewayProxyEvent) -> Dict[str, Any]:
        try:
            check_method(event)
        except ImageDataValidationError as e:
            return text_response(e.status_code, e.message)

        logger.info("업로드 함수 호출: POST")

        try:
            payload = parse_body(event)
            image_data = validate_image_data(payload, self.max_image_size)
        except ImageDataValidationError as e:
            metrics.add_metric(name="InvalidUploadRequest", unit=MetricUnit.Count, value=1)
            return text_response(e.status_code, e.message)

        try:
            image_url = self.forward(image_data)
        except UploadRejectedError as e:
            logger.error(f"Cloudinary 업로드 실패: {e}")
            metrics.add_metric(name="ImageUploadFailed", unit=MetricUnit.Count, value=1)
            return text_response(500, UPLOAD_FAILED)
        except Exception as e:
            logger.exception(f"이미지 업로드 중 오류: {e}")
            metrics.add_metric(name="ImageUploadFailed", unit=MetricUnit.Count, value=1)
            return text_response(500, SERVER_ERROR)

        metrics.add_metric(name="ImageUploadSucceeded", unit=MetricUnit.Count, value=1)
        return json_response(200, {'imageUrl': image_url})

def build_upload_handler() -> UploadHandler:
    """호출 시점의 설정으로 핸들러 생성"""
    config = load_config()
    uploader = CloudinaryUploader(
        cloud_name=config.cloud_name,
        upload_preset=config.upload_preset,
        api_base_url=config.api_base_url,
        timeout=config.timeout
    )
    return UploadHandler(uploader, max_image_size=config.max_image_size)

@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """Data URL 이미지를 Cloudinary에 업로드하고 호스팅 URL 반환"""
    proxy_event = APIGatewayProxyEvent(event)

    # 설정 로드 전에 메서드 검사
    try:
        check_method(proxy_event)
    except ImageDataValidationError as e:
        return text_response(e.status_code, e.message)

    try:
        upload_handler = build_upload_handler()
    except ConfigurationError as e:
        logger.error(f"설정 로드 실패: {e}")
        return text_response(500, SERVER_ERROR)

    return upload_handler.handle(proxy_event)
