"""
Sample Guides Service
Built-in process guides that can be seeded into an empty database
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field

from schemas.process_guide import Process, ProcessStep, StepBranch


@dataclass
class SampleGuide:
    process: Process
    steps: List[ProcessStep] = field(default_factory=list)
    branches: List[StepBranch] = field(default_factory=list)


class SampleGuidesService:
    """Service for the bundled sample guides"""

    def __init__(self):
        self.guides = self._load_guides()

    def _load_guides(self) -> Dict[str, SampleGuide]:
        guides = {}
        guides.update(self._get_admission_guide())
        guides.update(self._get_onboarding_guide())
        return guides

    def get_all(self) -> List[SampleGuide]:
        return list(self.guides.values())

    def get(self, process_id: str) -> Optional[SampleGuide]:
        return self.guides.get(process_id)

    def _get_admission_guide(self) -> Dict[str, SampleGuide]:
        """
        Nested decisions with a loop back:
        Check Eligibility -> Submit Documents -> Pay Fee, or Request Help,
        whose YES side returns to Submit Documents.
        """
        pid = "process-sample-1"
        process = Process(
            id=pid,
            title="College Admission Process",
            description="Complete step-by-step guide for college admission procedure including application, document verification, and enrollment",
            category="Academic",
            created_at="2024-01-15",
            updated_at="2024-01-15",
        )
        steps = [
            ProcessStep(
                id="step-sample-1-1", process_id=pid, step_number=1,
                title="Fill Application Form",
                description="Visit the college website and complete the online application form with personal details, academic records, and contact information.",
            ),
            ProcessStep(
                id="step-sample-1-2", process_id=pid, step_number=2,
                title="Check Eligibility",
                description="Verify if the applicant meets the minimum eligibility criteria including marks, age, and required qualifications.",
                is_decision=True,
            ),
            ProcessStep(
                id="step-sample-1-3", process_id=pid, step_number=3,
                title="Submit Documents",
                description="Upload required documents: 10th & 12th marksheets, transfer certificate, migration certificate, passport photos, and ID proof.",
                is_decision=True,
            ),
            ProcessStep(
                id="step-sample-1-4", process_id=pid, step_number=4,
                title="Pay Application Fee",
                description="Complete the payment of application fee through online payment gateway (Debit/Credit card, Net Banking, or UPI).",
                next_step_id=None,
            ),
            ProcessStep(
                id="step-sample-1-5", process_id=pid, step_number=5,
                title="Request Document Help",
                description="Contact the admission office for help with document requirements. They can guide you on what documents are needed.",
                is_decision=True,
            ),
        ]
        branches = [
            StepBranch(id="branch-step-sample-1-2-yes", step_id="step-sample-1-2", condition="yes",
                       next_step_id="step-sample-1-3", description="Student meets eligibility criteria"),
            StepBranch(id="branch-step-sample-1-2-no", step_id="step-sample-1-2", condition="no",
                       next_step_id=None, description="Student does not meet eligibility - Application ends"),
            StepBranch(id="branch-step-sample-1-3-yes", step_id="step-sample-1-3", condition="yes",
                       next_step_id="step-sample-1-4", description="All documents submitted successfully"),
            StepBranch(id="branch-step-sample-1-3-no", step_id="step-sample-1-3", condition="no",
                       next_step_id="step-sample-1-5", description="Documents incomplete or incorrect"),
            StepBranch(id="branch-step-sample-1-5-yes", step_id="step-sample-1-5", condition="yes",
                       next_step_id="step-sample-1-3", description="Try submitting documents again"),
            StepBranch(id="branch-step-sample-1-5-no", step_id="step-sample-1-5", condition="no",
                       next_step_id=None, description="Give up - Application ends"),
        ]
        return {pid: SampleGuide(process=process, steps=steps, branches=branches)}

    def _get_onboarding_guide(self) -> Dict[str, SampleGuide]:
        pid = "process-sample-2"
        process = Process(
            id=pid,
            title="Employee Onboarding",
            description="Step-by-step HR onboarding workflow for new employees",
            category="HR",
            created_at="2024-01-10",
            updated_at="2024-01-18",
        )
        steps = [
            ProcessStep(id="step-sample-2-1", process_id=pid, step_number=1,
                        title="Offer Letter Acceptance",
                        description="Candidate accepts the offer letter and signs the employment agreement"),
            ProcessStep(id="step-sample-2-2", process_id=pid, step_number=2,
                        title="Submit Documents",
                        description="Submit educational certificates, experience letters, ID proof, and address proof"),
            ProcessStep(id="step-sample-2-3", process_id=pid, step_number=3,
                        title="Background Verification",
                        description="HR initiates background verification process",
                        is_decision=True),
            ProcessStep(id="step-sample-2-4", process_id=pid, step_number=4,
                        title="IT Setup",
                        description="IT department sets up email, laptop, and access credentials"),
            ProcessStep(id="step-sample-2-5", process_id=pid, step_number=5,
                        title="Orientation Program",
                        description="Attend company orientation and training sessions",
                        next_step_id=None),
            ProcessStep(id="step-sample-2-6", process_id=pid, step_number=6,
                        title="Verification Failed",
                        description="Background verification failed. Offer rescinded.",
                        next_step_id=None),
        ]
        branches = [
            StepBranch(id="branch-step-sample-2-3-yes", step_id="step-sample-2-3", condition="yes",
                       next_step_id="step-sample-2-4", description="Verification successful"),
            StepBranch(id="branch-step-sample-2-3-no", step_id="step-sample-2-3", condition="no",
                       next_step_id="step-sample-2-6", description="Verification failed"),
        ]
        return {pid: SampleGuide(process=process, steps=steps, branches=branches)}
