"""
Clinician alert composition.

Turns a CrisisEvent into the subject, plain-text body and provider
template parameters sent to the reviewing clinician.
"""

import json
from dataclasses import dataclass
from typing import Optional

from crisis_core.config import get_settings
from crisis_core.core.phone.collector import format_phone_number
from crisis_core.core.resources.catalog import clinical_resources_text
from crisis_core.safety.models import CrisisEvent, CrisisType, Severity, describe_location

PRIORITY_TAGS: dict[Severity, str] = {
    Severity.CRITICAL: "[CRITICAL]",
    Severity.HIGH: "[URGENT]",
    Severity.MODERATE: "[URGENT]",
    Severity.LOW: "[REVIEW]",
}

CLINICAL_GUIDANCE: dict[CrisisType, str] = {
    CrisisType.SUICIDE: (
        "=== SUICIDE RISK CLINICAL GUIDANCE ===\n"
        "IMMEDIATE ASSESSMENT PRIORITIES:\n"
        "- Suicidal ideation, plan, intent and means\n"
        "- Protective factors against risk factors\n"
        "- Previous attempts or self-harm history\n"
        "- Current substance use or intoxication\n"
        "- Access to lethal means\n"
        "RECOMMENDED CLINICAL ACTIONS:\n"
        "- Immediate safety assessment via phone contact\n"
        "- Collaborate with emergency services if a specific plan or means is reported\n"
        "- Document the risk assessment and safety plan\n"
        "- Arrange increased contact frequency"
    ),
    CrisisType.SELF_HARM: (
        "=== SELF-HARM CLINICAL GUIDANCE ===\n"
        "- Assess current injuries and need for medical care\n"
        "- Frequency, method and escalation of self-harm behavior\n"
        "- Screen for co-occurring suicidal ideation\n"
        "- Identify triggers and current coping strategies\n"
        "- Consider DBT-informed follow-up"
    ),
    CrisisType.EATING_DISORDER: (
        "=== EATING DISORDER CRISIS CLINICAL GUIDANCE ===\n"
        "MEDICAL STABILITY ASSESSMENT NEEDED:\n"
        "- Vital signs and cardiac status\n"
        "- Electrolyte imbalance risk\n"
        "- Nutritional status and duration of restriction\n"
        "- Purging behaviors and frequency\n"
        "RECOMMENDED CLINICAL ACTIONS:\n"
        "- Medical evaluation for physical complications\n"
        "- Consider referral to specialized eating disorder treatment\n"
        "- Monitor for suicidal ideation (high comorbidity)"
    ),
    CrisisType.SUBSTANCE_USE: (
        "=== SUBSTANCE USE CLINICAL GUIDANCE ===\n"
        "- Assess overdose risk and current intoxication\n"
        "- Substances, quantity and route of use\n"
        "- Withdrawal risk (alcohol and benzodiazepine withdrawal can be life-threatening)\n"
        "- Naloxone access for opioid use\n"
        "- Referral for detox or medication-assisted treatment as indicated"
    ),
    CrisisType.GENERAL_CRISIS: (
        "=== GENERAL CRISIS CLINICAL GUIDANCE ===\n"
        "- Comprehensive risk assessment required\n"
        "- Evaluate for underlying mental health conditions\n"
        "- Assess social support and coping resources\n"
        "- Provide appropriate level of care recommendations"
    ),
}

PHONE_ACTIONS = (
    "RECOMMENDED IMMEDIATE ACTIONS:\n"
    "1. Call the patient as soon as possible\n"
    "2. Conduct a safety assessment by phone\n"
    "3. Arrange emergency services if imminent risk is confirmed\n"
    "4. Document the contact and outcome"
)


@dataclass
class CrisisAlert:
    """A composed clinician notification."""

    subject: str
    body: str
    template_params: dict


def crisis_subject(event: CrisisEvent) -> str:
    """e.g. "[CRITICAL] SUICIDE CRISIS - Akron, Summit County - Clinical Review Required"."""
    tag = PRIORITY_TAGS.get(event.severity, "[URGENT]")
    crisis = event.crisis_type.value.upper()
    return f"{tag} {crisis} CRISIS - {describe_location(event.location)} - Clinical Review Required"


def _refusal_text(details: dict) -> str:
    refusals = details.get("refusal_history")
    if not refusals or not refusals.get("refusal_count"):
        return "No documented refusals in this session"
    return json.dumps(refusals, indent=2)


def _template_params(event: CrisisEvent, subject: str, body: str) -> dict:
    settings = get_settings()
    return {
        "to": settings.clinician_email,
        "from_name": settings.notification_from_name,
        "subject": subject,
        "message": body,
        "timestamp": event.timestamp.isoformat(),
        "crisis_type": event.crisis_type.value,
        "severity": event.severity.value,
        "session_id": event.session_id,
        "user_input": event.user_text,
        "roger_response": event.response_text,
        "location": describe_location(event.location),
        "clinical_notes": event.clinical_notes or "None",
        "risk_assessment": event.risk_assessment or "Standard",
        "clinical_guidance": CLINICAL_GUIDANCE[event.crisis_type],
        "local_resources": clinical_resources_text(event.location),
        "session_duration": event.details.get("session_duration", "Unknown"),
        "message_count": event.details.get("message_count", 0),
    }


def build_crisis_alert(event: CrisisEvent) -> CrisisAlert:
    """Compose the clinician alert for a crisis detection."""
    details = event.details
    subject = crisis_subject(event)
    body = "\n".join([
        "CRISIS DETECTION ALERT - Clinical Documentation",
        "",
        "=== IMMEDIATE CLINICAL ASSESSMENT ===",
        f"Timestamp: {event.timestamp.isoformat()}",
        f"Session ID: {event.session_id}",
        f"Crisis Type: {event.crisis_type.value}",
        f"Severity Level: {event.severity.value}",
        f"Risk Assessment: {event.risk_assessment or 'Standard assessment'}",
        "",
        "=== SESSION CONTEXT ===",
        f"Session Duration: {details.get('session_duration', 'Unknown')}",
        f"Total Messages: {details.get('message_count', 'Unknown')}",
        f"Patient Location: {describe_location(event.location)}",
        f"Detection Method: {event.detection_method}",
        "",
        "=== CLINICAL NOTES ===",
        event.clinical_notes or "Standard crisis presentation",
        "",
        "=== PATIENT PRESENTATION ===",
        f'User Message: "{event.user_text}"',
        "",
        f'Response: "{event.response_text}"',
        "",
        "=== REFUSAL HISTORY ===",
        _refusal_text(details),
        "",
        CLINICAL_GUIDANCE[event.crisis_type],
        "",
        clinical_resources_text(event.location),
        "",
        "IMMEDIATE ACTION REQUIRED - LICENSED CLINICAL REVIEW",
    ])
    return CrisisAlert(subject=subject, body=body, template_params=_template_params(event, subject, body))


def build_phone_alert(event: CrisisEvent, phone_number: Optional[str]) -> CrisisAlert:
    """
    Compose the callback-number alert.

    The number only travels in the alert; the stored event carries a
    redacted copy of the message.
    """
    formatted = format_phone_number(phone_number) if phone_number else "Unavailable"
    subject = (
        f"[URGENT] CRISIS PATIENT PHONE NUMBER - {event.crisis_type.value.upper()} - "
        f"{describe_location(event.location)} - Immediate Contact Required"
    )
    body = "\n".join([
        "CRISIS PATIENT PROVIDED A CALLBACK NUMBER",
        "",
        f"Phone Number: {formatted}",
        f"Crisis Type: {event.crisis_type.value}",
        f"Session ID: {event.session_id}",
        f"Timestamp: {event.timestamp.isoformat()}",
        f"Patient Location: {describe_location(event.location)}",
        f"Phone requests before number: {event.details.get('phone_request_count', 'Unknown')}",
        "",
        PHONE_ACTIONS,
        "",
        clinical_resources_text(event.location),
    ])
    params = _template_params(event, subject, body)
    params["phone_number"] = formatted
    return CrisisAlert(subject=subject, body=body, template_params=params)
