from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EmergencyScenario:
    id: str
    title: str
    description: str
    symptoms: tuple[str, ...]
    steps: tuple[str, ...]
    call_script: str
    urgency_level: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "symptoms": list(self.symptoms),
            "steps": list(self.steps),
            "call_script": self.call_script,
            "urgency_level": self.urgency_level,
        }


@dataclass(frozen=True)
class EmergencyContact:
    name: str
    phone: str
    relationship: str

    def as_dict(self) -> dict[str, str]:
        return {"name": self.name, "phone": self.phone, "relationship": self.relationship}


EMERGENCY_SCENARIOS: tuple[EmergencyScenario, ...] = (
    EmergencyScenario(
        id="heart-attack",
        title="Heart Attack",
        description="Chest pain and breathing difficulty",
        symptoms=("Chest pain or pressure", "Shortness of breath", "Nausea", "Sweating", "Dizziness"),
        steps=(
            "Call 911 immediately",
            "Chew aspirin if available and not allergic",
            "Sit down and rest",
            "Loosen tight clothing",
            "Stay calm and wait for help",
        ),
        call_script=(
            "911, I need an ambulance. I think someone is having a heart attack. Address: [YOUR ADDRESS]. "
            "The person has chest pain and difficulty breathing. They are [AGE] years old and "
            "[CONSCIOUS/UNCONSCIOUS]."
        ),
        urgency_level="high",
    ),
    EmergencyScenario(
        id="stroke",
        title="Stroke",
        description="FAST symptoms - Face, Arms, Speech, Time",
        symptoms=("Face drooping", "Arm weakness", "Speech difficulty", "Sudden confusion", "Severe headache"),
        steps=(
            "Call 911 immediately",
            "Note the time symptoms started",
            "Keep person comfortable",
            "Do not give food or water",
            "Stay with the person",
        ),
        call_script=(
            "911, I need an ambulance for a possible stroke. Address: [YOUR ADDRESS]. The person shows signs "
            "of stroke - face drooping, arm weakness, or speech problems. Symptoms started at [TIME]."
        ),
        urgency_level="high",
    ),
    EmergencyScenario(
        id="choking",
        title="Choking",
        description="Person cannot breathe or speak",
        symptoms=("Cannot speak or cough", "Clutching throat", "Blue lips/face", "Panic expression"),
        steps=(
            'Ask "Are you choking?"',
            "If they cannot speak, call 911",
            "Perform Heimlich maneuver",
            "Continue until object dislodged or person unconscious",
            "If unconscious, start CPR",
        ),
        call_script=(
            "911, I need an ambulance. Someone is choking and cannot breathe. Address: [YOUR ADDRESS]. "
            "I am performing the Heimlich maneuver."
        ),
        urgency_level="high",
    ),
)

DEFAULT_CONTACTS: tuple[EmergencyContact, ...] = (
    EmergencyContact(name="Emergency Contact 1", phone="+1-555-0001", relationship="Family"),
    EmergencyContact(name="Emergency Contact 2", phone="+1-555-0002", relationship="Friend"),
)


class ScenarioCatalog:
    def __init__(self, scenarios: tuple[EmergencyScenario, ...] = EMERGENCY_SCENARIOS) -> None:
        self._scenarios = {scenario.id: scenario for scenario in scenarios}

    def list(self) -> list[EmergencyScenario]:
        return list(self._scenarios.values())

    def get(self, scenario_id: str) -> EmergencyScenario:
        scenario = self._scenarios.get(scenario_id)
        if not scenario:
            raise KeyError(f"Scenario not found: {scenario_id}")
        return scenario
