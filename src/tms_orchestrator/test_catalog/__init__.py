"""Test catalog exports."""

from .catalog_contracts import (
    UNSET,
    CompositionChange,
    CreateTestCaseRequest,
    CreateTestSuiteRequest,
    UpdateTestCaseExecutionTargetRequest,
    UpdateTestSuiteCompositionRequest,
    UpdateTestSuiteMetadataRequest,
)
from .catalog_entities import TestCase, TestSuite
from .catalog_repositories import TestCaseRepository, TestSuiteRepository
from .catalog_use_cases import (
    CreateTestCaseUseCase,
    CreateTestSuiteUseCase,
    UpdateTestCaseExecutionTargetUseCase,
    UpdateTestSuiteCompositionUseCase,
    UpdateTestSuiteMetadataUseCase,
)

__all__ = [
    "UNSET",
    "CompositionChange",
    "CreateTestCaseRequest",
    "CreateTestSuiteRequest",
    "UpdateTestCaseExecutionTargetRequest",
    "UpdateTestSuiteCompositionRequest",
    "UpdateTestSuiteMetadataRequest",
    "TestCase",
    "TestSuite",
    "TestCaseRepository",
    "TestSuiteRepository",
    "CreateTestCaseUseCase",
    "CreateTestSuiteUseCase",
    "UpdateTestCaseExecutionTargetUseCase",
    "UpdateTestSuiteCompositionUseCase",
    "UpdateTestSuiteMetadataUseCase",
]
