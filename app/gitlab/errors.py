from __future__ import annotations

"""
GitLab 调用的错误类型。

分三类：
- `GitLabUnavailableError`：DNS/连接/超时等网络层失败，带 `code` 标记方便定位
- `GitLabAPIError`：GitLab 返回非 2xx，带 status 与响应正文
- `GitLabMalformedResponseError`：2xx 但正文不是 JSON 或结构不对

三类都不会被写入缓存；是否重试/降级/中止由调用方决定。
"""


class GitLabError(RuntimeError):
    """GitLab 调用失败的基类。"""

    pass


class GitLabUnavailableError(GitLabError):
    """GitLab 不可达（网络/超时）。"""

    def __init__(self, endpoint: str, code: str, message: str) -> None:
        super().__init__(f"GitLab unavailable ({code}) for {endpoint}: {message}")
        self.endpoint = endpoint
        self.code = code
        self.message = message


class GitLabAPIError(GitLabError):
    """GitLab 拒绝请求（非 2xx）。"""

    def __init__(self, endpoint: str, status_code: int, message: str) -> None:
        super().__init__(f"GitLab API error {status_code} for {endpoint}: {message}")
        self.endpoint = endpoint
        self.status_code = status_code
        self.message = message

    @property
    def code(self) -> str:
        return f"HTTP_{self.status_code}"


class GitLabMalformedResponseError(GitLabError):
    """GitLab 返回 2xx，但正文不是 JSON 或结构不符合预期（例如被 SSO/代理页替换）。"""

    def __init__(self, endpoint: str, message: str) -> None:
        super().__init__(f"Malformed GitLab response for {endpoint}: {message}")
        self.endpoint = endpoint
        self.message = message

    @property
    def code(self) -> str:
        return "MALFORMED_RESPONSE"
