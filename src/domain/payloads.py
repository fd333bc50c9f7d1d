"""
Step payloads - typed form data for each wizard step.

Every payload is a pydantic model tagged by its ``step`` literal so the
union ``StepPayload`` can be parsed from untyped JSON and dispatched
exhaustively. Fields default to empty values: a half-filled form must
still parse so that ``validation_errors()`` can report everything that
is missing at once instead of failing on the first field.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .validation import (
    validate_email,
    validate_email_with_details,
    validate_phone_strict,
    validate_phone_with_details,
    validate_website,
)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
ALLOWED_DOCUMENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")
ALLOWED_DOCUMENT_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf")

# Racket sports whose "Team" sub-category fields four players
_RACKET_SPORTS = ("Tennis", "Badminton", "Table Tennis", "Padel")
_TEAM_SPORT_SIZES = {
    "Football": 7,
    "Basketball": 5,
    "Volleyball": 6,
    "Hockey": 7,
    "Netball": 7,
    "Rugby (7s)": 7,
    "Handball": 7,
    "Cricket": 11,
}


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def validation_errors(self) -> list[str]:
        raise NotImplementedError


# --- Student flow -------------------------------------------------------


class PersonalDetails(_Payload):
    step: Literal["personal_details"] = "personal_details"
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""
    address: str = ""
    date_of_birth: str = ""
    gender: str = ""
    student_id: str = ""
    institute_type: str = ""
    institute_name: str = ""
    custom_institute_name: str = ""

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.first_name:
            errors.append("First Name is required")
        if not self.last_name:
            errors.append("Last Name is required")

        email_check = validate_email_with_details(self.email)
        if not email_check.is_valid:
            errors.append(email_check.error_message)

        if not self.date_of_birth:
            errors.append("Date of Birth is required")
        if not self.gender:
            errors.append("Gender is required")
        if not self.institute_type:
            errors.append("Institute Type is required")
        if not self.institute_name:
            errors.append("Institution is required")
        elif self.institute_name == "Other" and not self.custom_institute_name:
            errors.append("Please specify institution name")
        if not self.student_id:
            errors.append("Student ID is required")

        phone_check = validate_phone_with_details(self.phone_number)
        if not phone_check.is_valid:
            errors.append(phone_check.error_message)

        if not self.address:
            errors.append("Address is required")
        return errors


class Documents(_Payload):
    step: Literal["documents"] = "documents"
    age_proof_filename: str = ""
    age_proof_content_type: str = ""
    age_proof_size: int = 0

    def is_allowed_type(self) -> bool:
        has_type = self.age_proof_content_type.lower() in ALLOWED_DOCUMENT_TYPES
        has_extension = self.age_proof_filename.lower().endswith(ALLOWED_DOCUMENT_EXTENSIONS)
        return has_type or has_extension

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.age_proof_filename:
            errors.append("Age Proof Document is required")
            return errors
        if self.age_proof_size > MAX_DOCUMENT_BYTES:
            errors.append("Age Proof Document must be 10MB or less")
        if not self.is_allowed_type():
            errors.append("Age Proof Document must be JPG, PNG, JPEG, or PDF format")
        return errors


class Parent(BaseModel):
    name: str = ""
    relation: str = ""
    phone: str = ""
    age: int | None = None
    email: str = ""


class ParentMedical(_Payload):
    step: Literal["parent_medical"] = "parent_medical"
    parents_attending: str = ""
    parents: list[Parent] = Field(default_factory=list)
    medical_facilities: str = ""
    medical_facilities_details: str = ""
    allergies_conditions: str = ""
    allergies_details: str = ""

    @property
    def parent_count(self) -> int:
        return len(self.parents) if self.parents_attending == "yes" else 0

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.parents_attending:
            errors.append("Please specify if parents are attending")

        if self.parents_attending == "yes":
            if not self.parents:
                errors.append("At least one parent is required")
            for index, parent in enumerate(self.parents, start=1):
                prefix = f"Parent {index}"
                if not parent.name:
                    errors.append(f"{prefix}: Name is required")
                if not parent.relation:
                    errors.append(f"{prefix}: Relation is required")
                if not parent.phone:
                    errors.append(f"{prefix}: Phone number is required")
                elif not validate_phone_strict(parent.phone):
                    errors.append(
                        f"{prefix}: Phone number must start with +254 followed by "
                        "9 digits (e.g., +254712345678)"
                    )
                if parent.age is None:
                    errors.append(f"{prefix}: Age is required")
                elif parent.age <= 0:
                    errors.append(f"{prefix}: Age must be a positive number")
                if not parent.email:
                    errors.append(f"{prefix}: Email address is required")
                elif not validate_email(parent.email):
                    errors.append(f"{prefix}: Please enter a valid email address")

        if not self.medical_facilities:
            errors.append("Please specify medical facility requirements")
        elif self.medical_facilities == "yes" and not self.medical_facilities_details:
            errors.append("Please specify medical facilities needed")

        if not self.allergies_conditions:
            errors.append("Please specify if you have allergies or health conditions")
        elif self.allergies_conditions == "yes" and not self.allergies_details:
            errors.append("Please specify your allergies or health conditions")
        return errors


class SelectedSport(BaseModel):
    sport_id: int
    sport_name: str = ""
    category_id: int | None = None
    category_name: str | None = None
    sub_category_id: int | None = None
    sub_category_name: str | None = None
    age_from: int
    age_to: int
    gender: str = "Male"
    type: str = ""


class SportsSelection(_Payload):
    step: Literal["sports_selection"] = "sports_selection"
    participation_type: str = ""
    selected_sports: list[SelectedSport] = Field(default_factory=list)
    experience: str = ""
    achievements: str = ""

    def add_sport(self, sport: SelectedSport) -> list[str]:
        """
        Append a sport selection.

        Returns:
            Error messages; the selection is only added when empty
        """
        if self.participation_type == "individual" and sport.category_id is None:
            return ["Please select a category for individual sports"]
        if sport.age_from > sport.age_to:
            return ["Age 'From' must be less than or equal to age 'To'"]

        for existing in self.selected_sports:
            if (
                existing.sport_id == sport.sport_id
                and existing.category_id == sport.category_id
                and existing.sub_category_id == sport.sub_category_id
                and existing.age_from == sport.age_from
                and existing.age_to == sport.age_to
            ):
                return ["This sport combination already exists"]

        self.selected_sports.append(sport.model_copy(update={"type": self.participation_type}))
        return []

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.participation_type:
            errors.append("Please select participation type")
        if not self.selected_sports:
            errors.append("Please add at least one sport")
        return errors


class ReviewPayment(_Payload):
    step: Literal["review_payment"] = "review_payment"
    accept_terms: bool = False
    payment_option: str = ""
    total_fee: float | None = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.accept_terms:
            errors.append("Please accept the terms and conditions")
        if self.payment_option not in ("payNow", "payLater"):
            errors.append("Please select a payment option")
        return errors


# --- Institution flow ---------------------------------------------------


class InstitutionDetails(_Payload):
    step: Literal["institution_details"] = "institution_details"
    institution_name: str = ""
    institution_email: str = ""
    institution_type: str = ""
    phone_number: str = ""
    website: str = ""
    principal_name: str = ""
    principal_contact: str = ""
    contact_person_name: str = ""
    contact_person_designation: str = ""
    contact_person_phone: str = ""
    contact_person_email: str = ""
    street_address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""
    description: str = ""
    institution_email_verified: bool = False
    contact_person_email_verified: bool = False

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if len(self.institution_name.strip()) < 2:
            errors.append("Institution name must be at least 2 characters")

        email_check = validate_email_with_details(self.institution_email)
        if not email_check.is_valid:
            errors.append(f"Institution Email: {email_check.error_message}")

        if not self.institution_type:
            errors.append("Institution Type is required")
        if len(self.phone_number.strip()) < 10:
            errors.append("Institution phone number must be at least 10 digits")
        if len(self.principal_name.strip()) < 2:
            errors.append("Principal name must be at least 2 characters")
        if len(self.principal_contact.strip()) < 10:
            errors.append("Principal contact number must be at least 10 digits")
        if len(self.contact_person_name.strip()) < 2:
            errors.append("Contact person name must be at least 2 characters")
        if len(self.contact_person_designation.strip()) < 2:
            errors.append("Contact person designation must be at least 2 characters")
        if len(self.contact_person_phone.strip()) < 10:
            errors.append("Contact person phone number must be at least 10 digits")

        if not self.contact_person_email:
            errors.append("Contact person email is required")
        else:
            contact_check = validate_email_with_details(self.contact_person_email)
            if not contact_check.is_valid:
                errors.append(f"Contact Person Email: {contact_check.error_message}")

        if self.website.strip() and not validate_website(self.website):
            errors.append("Website must be a valid URL (e.g., https://www.example.com)")

        if not self.institution_email_verified:
            errors.append("Institution email must be verified")
        if not self.contact_person_email_verified:
            errors.append("Contact person email must be verified")
        return errors


class TeamStudent(BaseModel):
    fname: str = ""
    mname: str = ""
    lname: str = ""
    student_id: str = ""
    email: str = ""
    dob: str = ""
    gender: str = ""
    phone: str = ""


class SportTeam(BaseModel):
    sport: str
    sport_id: int | None = None
    sport_type: str = "Team"
    category: str = ""
    sub_category: str = ""
    age_from: str
    age_to: str
    gender: str
    max_students: int = 1
    students: list[TeamStudent] = Field(default_factory=list)


def max_team_size(sport: str, sport_type: str, sub_category: str = "") -> int:
    """Default roster size when the sport record carries no max_limit."""
    if sport_type == "Individual":
        if sport in _RACKET_SPORTS and sub_category == "Team":
            return 4
        return 1
    if sport_type == "Team":
        return _TEAM_SPORT_SIZES.get(sport, 7)
    return 1


class SportTeams(_Payload):
    step: Literal["sport_teams"] = "sport_teams"
    sport_teams: list[SportTeam] = Field(default_factory=list)

    @property
    def student_count(self) -> int:
        return sum(len(team.students) for team in self.sport_teams)

    def add_team(self, team: SportTeam, age_categories: list[str]) -> list[str]:
        """Append a team after checking required fields, age order and duplicates."""
        errors: list[str] = []
        if not team.sport:
            errors.append("Please select a sport")
        if not team.age_from:
            errors.append("Please select age from")
        if not team.age_to:
            errors.append("Please select age to")
        if not team.gender:
            errors.append("Please select gender")
        if (
            team.age_from in age_categories
            and team.age_to in age_categories
            and age_categories.index(team.age_from) > age_categories.index(team.age_to)
        ):
            errors.append("Age 'From' must be less than or equal to Age 'To'")

        for existing in self.sport_teams:
            if (
                existing.sport_id == team.sport_id
                and existing.category == team.category
                and existing.sub_category == team.sub_category
                and existing.age_from == team.age_from
                and existing.age_to == team.age_to
                and existing.gender == team.gender
            ):
                errors.append("This sport combination is already added")
                break

        if not errors:
            self.sport_teams.append(team)
        return errors

    def add_student(self, team_index: int, student: TeamStudent) -> list[str]:
        """Add a student to a team, rejecting duplicates across all teams."""
        errors: list[str] = []
        for field_name, label in (
            ("fname", "First Name"),
            ("lname", "Last Name"),
            ("student_id", "Student ID"),
            ("email", "Email"),
            ("dob", "Date of Birth"),
            ("gender", "Gender"),
            ("phone", "Phone Number"),
        ):
            if not getattr(student, field_name):
                errors.append(f"{label} is required")

        if not 0 <= team_index < len(self.sport_teams):
            errors.append("Please select a sport team")
            return errors

        everyone = [s for team in self.sport_teams for s in team.students]
        if student.student_id and any(s.student_id == student.student_id for s in everyone):
            errors.append("Student ID already exists")
        if student.email and any(s.email == student.email for s in everyone):
            errors.append("Email address already exists")

        team = self.sport_teams[team_index]
        if len(team.students) >= team.max_students:
            errors.append(f"{team.sport} team is full ({team.max_students} students)")

        if not errors:
            team.students.append(student)
        return errors

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.sport_teams:
            errors.append("Please add at least one sport team")
        for team in self.sport_teams:
            if not team.students:
                errors.append(f"{team.sport} team must have at least one student")
        return errors


class SponsorshipRequest(BaseModel):
    requested_amount: str = ""
    sponsorship_type: str = ""
    reason: str = ""


class InstitutionPayment(_Payload):
    step: Literal["institution_payment"] = "institution_payment"
    payment_type: str = ""
    sponsorship: SponsorshipRequest | None = None
    total_fees: float = 0
    students_fee: float = 0
    sports_fee: float = 0
    status: str = ""

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if self.payment_type not in ("payNow", "sponsor", "payByStudent"):
            errors.append("Please select a payment option")
        if self.payment_type == "sponsor":
            sponsorship = self.sponsorship or SponsorshipRequest()
            if not (
                sponsorship.requested_amount and sponsorship.sponsorship_type and sponsorship.reason
            ):
                errors.append("Please fill in all sponsor request fields.")
        return errors


StepPayload = Annotated[
    Union[
        PersonalDetails,
        Documents,
        ParentMedical,
        SportsSelection,
        ReviewPayment,
        InstitutionDetails,
        SportTeams,
        InstitutionPayment,
    ],
    Field(discriminator="step"),
]

_payload_adapter = TypeAdapter(StepPayload)


def parse_payload(raw: dict) -> StepPayload:
    """Parse an untyped dict (with its ``step`` tag) into the matching payload."""
    return _payload_adapter.validate_python(raw)
