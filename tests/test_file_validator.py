import pytest

from app.schemas.file import MAX_FILE_SIZE, UploadCandidate
from app.utils.file_validator import (
    MAX_FILES_PER_REPORT,
    RejectionReason,
    ValidationGate,
    validate_file_name,
)
from app.utils.result import ErrorKind

REPORT_ID = "rep_AbC123"


def candidate(mime_type="image/png", size=1024, report_id=REPORT_ID):
    return UploadCandidate(size=size, mime_type=mime_type, report_id=report_id)


@pytest.fixture
def gate():
    return ValidationGate()


@pytest.mark.parametrize(
    "mime_type",
    [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/avi",
        "video/mov",
        "application/pdf",
    ],
)
def test_accepts_supported_types(gate, mime_type):
    assert gate.validate(candidate(mime_type=mime_type), 0).accepted


@pytest.mark.parametrize(
    "mime_type", ["text/plain", "application/zip", "image/svg+xml", ""]
)
def test_rejects_unsupported_types(gate, mime_type):
    verdict = gate.validate(candidate(mime_type=mime_type), 0)

    assert not verdict.accepted
    assert verdict.reason is RejectionReason.UNSUPPORTED_TYPE


def test_size_limit_is_inclusive(gate):
    assert gate.validate(candidate(size=MAX_FILE_SIZE), 0).accepted
    assert gate.validate(candidate(size=0), 0).accepted

    verdict = gate.validate(candidate(size=MAX_FILE_SIZE + 1), 0)
    assert verdict.reason is RejectionReason.TOO_LARGE


def test_negative_size_is_rejected(gate):
    assert gate.validate(candidate(size=-1), 0).reason is RejectionReason.TOO_LARGE


@pytest.mark.parametrize(
    "report_id",
    ["rep_AbC12", "rep_AbC1234", "REP_AbC123", "rep_AbC12!", "file_AbC123", "rep_AbC123\n"],
)
def test_rejects_malformed_report_ids(gate, report_id):
    verdict = gate.validate(candidate(report_id=report_id), 0)

    assert verdict.reason is RejectionReason.INVALID_REPORT_ID


def test_quota_boundary(gate):
    assert gate.validate(candidate(), MAX_FILES_PER_REPORT - 1).accepted

    verdict = gate.validate(candidate(), MAX_FILES_PER_REPORT)
    assert verdict.reason is RejectionReason.QUOTA_EXCEEDED
    assert str(MAX_FILES_PER_REPORT) in verdict.message


def test_first_failing_rule_wins(gate):
    everything_wrong = candidate(
        mime_type="text/plain", size=MAX_FILE_SIZE + 1, report_id="nope"
    )
    assert gate.validate(everything_wrong, 99).reason is RejectionReason.UNSUPPORTED_TYPE

    too_large_bad_report = candidate(size=MAX_FILE_SIZE + 1, report_id="nope")
    assert gate.validate(too_large_bad_report, 99).reason is RejectionReason.TOO_LARGE

    bad_report_over_quota = candidate(report_id="nope")
    assert (
        gate.validate(bad_report_over_quota, 99).reason
        is RejectionReason.INVALID_REPORT_ID
    )


def test_custom_limits():
    gate = ValidationGate(max_file_size=10, max_files_per_report=2)

    assert gate.validate(candidate(size=11), 0).reason is RejectionReason.TOO_LARGE
    assert gate.validate(candidate(size=10), 2).reason is RejectionReason.QUOTA_EXCEEDED


def test_rejection_converts_to_validation_error(gate):
    error = gate.validate(candidate(mime_type="text/plain"), 0).to_error()

    assert error.kind is ErrorKind.VALIDATION
    assert error.details == {"reason": "unsupported type"}


@pytest.mark.parametrize("name", ["", "   ", None, "x" * 256])
def test_rejects_invalid_file_names(name):
    verdict = validate_file_name(name)

    assert not verdict.accepted
    assert verdict.reason is RejectionReason.INVALID_NAME


def test_accepts_regular_file_name():
    assert validate_file_name("site-photo (1).jpg").accepted
    assert validate_file_name("x" * 255).accepted
