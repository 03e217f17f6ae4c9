import time
from collections import defaultdict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from khedive.core.logger import get_logger, generate_request_id, request_id_var

logger = get_logger("access")

SLOWEST_KEEP = 5


class MetricsStore:
    """요청/에러 메트릭: 인메모리 집계 (프로세스 단위)"""

    def __init__(self):
        self.reset()

    def reset(self):
        self.total_requests = 0
        self.by_status = defaultdict(int)     # {200: 42, 400: 3, 500: 1}
        self.by_route = defaultdict(int)      # {"POST /api/chat": 30, "GET /api/conversations/{conversation_id}": 12}
        self.by_error = defaultdict(int)      # {"GenerationError": 2, "ValidationError": 5}
        self.total_duration_ms = 0.0
        self.slowest = []

    def record(self, method: str, route: str, status: int, duration_ms: float):
        self.total_requests += 1
        self.by_status[status] += 1
        self.by_route[f"{method} {route}"] += 1
        self.total_duration_ms += duration_ms

        self.slowest.append({
            "duration_ms": round(duration_ms, 1),
            "method": method,
            "route": route,
            "status": status,
        })
        self.slowest.sort(key=lambda x: x["duration_ms"], reverse=True)
        del self.slowest[SLOWEST_KEEP:]

    def record_error(self, error_type: str):
        self.by_error[error_type] += 1

    def summary(self) -> dict:
        avg = round(self.total_duration_ms / self.total_requests, 1) if self.total_requests else 0
        return {
            "total_requests": self.total_requests,
            "avg_response_time_ms": avg,
            "by_status": dict(self.by_status),
            "by_route": dict(self.by_route),
            "by_error": dict(self.by_error),
            "slowest_top5": list(self.slowest),
        }


# 싱글톤 인스턴스
metrics_store = MetricsStore()


def _route_template(request: Request) -> str:
    """/api/conversations/abc-123 → /api/conversations/{conversation_id} (카디널리티 억제)"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """
    모든 HTTP 요청을 자동 계측하는 미들웨어

    1. 요청마다 request_id 부여 (ContextVar → 모든 로그에 포함)
    2. 응답 시간 측정 + 메트릭 기록
    3. 접근 로그 출력
    4. X-Request-ID 응답 헤더
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = request.headers.get("X-Request-ID") or generate_request_id()
        token = request_id_var.set(req_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            route = _route_template(request)

            metrics_store.record(
                method=request.method,
                route=route,
                status=response.status_code,
                duration_ms=duration_ms,
            )
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms",
                extra={"extra_data": {
                    "method": request.method,
                    "route": route,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                }}
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
