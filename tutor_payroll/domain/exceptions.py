"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InstructorNotFoundError(DomainException):
    """Instructor id does not resolve to a known instructor"""

    def __init__(self, instructor_id: str):
        super().__init__(f"Instructor not found: {instructor_id}")
        self.instructor_id = instructor_id


class StudentNotFoundError(DomainException):
    """Student id does not resolve to a known student"""

    def __init__(self, student_id: int):
        super().__init__(f"Student not found: {student_id}")
        self.student_id = student_id


class DataInconsistencyError(DomainException):
    """Ownership data contradicts itself (overlaps, orphaned or conflicting events)"""

    pass


class PaymentStatusError(DomainException):
    """Payment status service returned an error or is unavailable"""

    pass
