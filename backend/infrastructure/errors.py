"""
Error Handling for the Agent Executor
Exception taxonomy with structured responses

Features:
- Custom exception classes for the execution path
- Error tracking and aggregation for the scheduler
- Structured JSON error responses for the trigger API
"""

import logging
import traceback
from datetime import datetime
from typing import Dict, Optional
from enum import Enum

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger("ErrorHandler")


# ============================================
# ERROR CODES
# ============================================

class ErrorCode(str, Enum):
    # Client errors
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORE_ERROR = "STORE_ERROR"
    BLOCKCHAIN_ERROR = "BLOCKCHAIN_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"

    # Execution errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UNKNOWN_AGENT_TYPE = "UNKNOWN_AGENT_TYPE"
    QUOTE_FAILED = "QUOTE_FAILED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    TRANSACTION_REVERTED = "TRANSACTION_REVERTED"


# ============================================
# CUSTOM EXCEPTIONS
# ============================================

class ExecutorError(Exception):
    """Base exception for the agent executor"""

    # Fatal errors stop the agent instead of leaving it for the next pass
    fatal = False

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Dict = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict:
        return {
            "success": False,
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp.isoformat()
            }
        }


class ValidationError(ExecutorError):
    """Input validation error"""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, details)


class NotFoundError(ExecutorError):
    """Resource not found"""
    def __init__(self, resource: str, identifier: str = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, ErrorCode.NOT_FOUND, 404)


class StoreError(ExecutorError):
    """Agent store operation failed"""
    def __init__(self, message: str, original_error: Exception = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.STORE_ERROR, 502, details)


class ConfigurationError(ExecutorError):
    """Missing or mismatched executor configuration"""
    fatal = True

    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, 500, details)


class UnknownAgentTypeError(ConfigurationError):
    """No strategy registered for the agent type"""
    def __init__(self, agent_type: str):
        super().__init__(f"Unknown agent type: {agent_type}", {"agent_type": agent_type})
        self.code = ErrorCode.UNKNOWN_AGENT_TYPE


class ChainError(ExecutorError):
    """RPC call or transaction submission failed"""
    def __init__(self, chain: str, message: str, tx_hash: str = None):
        details = {"chain": chain}
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, ErrorCode.BLOCKCHAIN_ERROR, 502, details)
        self.tx_hash = tx_hash


class ChainTimeoutError(ChainError):
    """RPC call or receipt wait exceeded its timeout"""
    def __init__(self, chain: str, message: str, tx_hash: str = None):
        super().__init__(chain, message, tx_hash)
        self.code = ErrorCode.TIMEOUT_ERROR


class TransactionRevertedError(ChainError):
    """A submitted transaction was included but reverted"""
    def __init__(self, chain: str, step: str, tx_hash: str):
        super().__init__(chain, f"{step} transaction reverted", tx_hash)
        self.code = ErrorCode.TRANSACTION_REVERTED
        self.step = step


class QuoteError(ExecutorError):
    """Price quote simulation failed"""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.QUOTE_FAILED, 502, details)


class InsufficientBalanceError(ExecutorError):
    """User balance is below the configured amount"""
    def __init__(self, token: str, balance: int, required: int):
        super().__init__(
            f"Insufficient balance: {balance} < {required}",
            ErrorCode.INSUFFICIENT_FUNDS,
            400,
            {"token": token, "balance": str(balance), "required": str(required)}
        )


# ============================================
# ERROR TRACKING
# ============================================

class ErrorTracker:
    """Tracks and aggregates errors for monitoring"""

    def __init__(self, max_errors: int = 1000):
        self.errors: list = []
        self.max_errors = max_errors
        self.error_counts: Dict[str, int] = {}

    def track(self, error: Exception, context: Optional[str] = None):
        """Track an error"""
        error_type = type(error).__name__

        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_info = {
            "type": error_type,
            "message": str(error),
            "context": context,
            "timestamp": datetime.now().isoformat(),
            "traceback": traceback.format_exc() if not isinstance(error, ExecutorError) else None
        }

        if isinstance(error, ExecutorError):
            error_info["code"] = error.code.value
            error_info["details"] = error.details

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        if not isinstance(error, ExecutorError) or error.status_code >= 500:
            logger.error(f"Error tracked: {error_type} - {str(error)[:200]}")

    def get_stats(self) -> Dict:
        """Get error statistics"""
        return {
            "total_errors": len(self.errors),
            "error_counts": self.error_counts,
            "recent_errors": self.errors[-10:],
            "timestamp": datetime.now().isoformat()
        }

    def clear(self):
        """Clear error history"""
        self.errors.clear()
        self.error_counts.clear()


# Global error tracker
error_tracker = ErrorTracker()


# ============================================
# FASTAPI EXCEPTION HANDLERS
# ============================================

async def executor_exception_handler(request: Request, exc: ExecutorError) -> JSONResponse:
    """Handle ExecutorError exceptions"""
    error_tracker.track(exc, str(request.url.path))

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPExceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    error_tracker.track(exc, str(request.url.path))

    logger.error(f"Unhandled exception: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "An unexpected error occurred",
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with FastAPI app"""
    app.add_exception_handler(ExecutorError, executor_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
