# Copyright 2021-present StarRocks, Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exception types shared across docsync"""

from typing import Optional


class DocSyncError(Exception):
    """Base class for docsync errors"""


class FatalError(DocSyncError):
    """
    Configuration or selection error that aborts a whole run.

    The workflow engine never retries a step raising this.
    """


class SourceSyncError(DocSyncError):
    """
    Failure while fetching one source.

    Args:
        message: What failed
        why: Underlying cause (stderr, remote response, ...)
    """

    def __init__(self, message: str, why: Optional[str] = None):
        self.message = message
        self.why = why.strip() if why else None
        super().__init__(f"{message}: {self.why}" if self.why else message)


class GitHubAPIError(DocSyncError):
    """Non-success response (or transport failure) from the GitHub API"""

    def __init__(self, step: str, status: Optional[int], body: str):
        self.step = step
        self.status = status
        self.body = body
        detail = f"HTTP {status}: {body}" if status is not None else body
        super().__init__(f"{step} failed: {detail}")

    @property
    def retryable(self) -> bool:
        # transport errors and server side failures may succeed on retry
        return self.status is None or self.status >= 500


class PushFailedError(DocSyncError):
    """Transient push failure, raised so the workflow engine retries the push step"""

    def __init__(self, result):
        self.result = result
        super().__init__(result.error or "Push failed")


class StepFailedError(DocSyncError):
    """A workflow step exhausted its attempts"""

    def __init__(self, step_id: str, attempts: int, cause: BaseException):
        self.step_id = step_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Step '{step_id}' failed after {attempts} attempt(s): {cause}")


class WorkflowTimeout(DocSyncError):
    """The run exceeded its deadline"""
