"""
Gemini-backed content generation.

Produces the training artifacts (phishing emails, vishing scripts, deepfake
audio clips) and AI grading of trainee responses. Every provider failure
is raised as UpstreamGenerationError with a sanitized message; nothing here
retries.
"""

import json
import logging
import random

import requests
from flask import current_app

from phishguard.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

# A transcript shorter than this made only of greeting words counts as hanging up.
DISENGAGE_MAX_CHARS = 12
GREETING_WORDS = {"hello", "hi", "hey", "who", "is", "this", "bye"}

PHONE_SCENARIOS = [
    "Bank or credit union fraud department about suspicious transactions requiring verification",
    "CEO or CFO urgently requesting a wire transfer or ACH change",
    "Vendor or supplier requesting updated payment details or a new bank account",
    "Tax authority threatening legal action unless immediate payment",
    "Investment or treasury team offering a time-sensitive opportunity",
    "Loan servicer or refinance offer requesting personal or account information",
    "Audit or compliance team asking to confirm credentials or approve a payment",
]

DEEPFAKE_SCRIPTS = [
    "Hi team, this is a reminder that our quarterly review has been moved to 3 PM. Please update your calendars.",
    "This is a confidential message from the executive office. We need you to authorize the wire transfer immediately.",
    "Hey, just confirming our lunch meeting tomorrow at noon. Looking forward to it.",
    "Attention all employees. There has been a security breach in Sector 7. Report to safety zones immediately.",
    "I'm calling from IT regarding the system migration this weekend. We'll need your login credentials to ensure a smooth transition.",
]

SYNTHETIC_VOICES = ["Charon", "Kore", "Fenrir", "Aoede", "Puck"]
REFERENCE_VOICE = "Aoede"
SYNTHETIC_PROBABILITY = 0.65
PHONE_AUDIO_CHARS = 500
ATTACKER_SCRIPT_CHARS = 1500

EMAIL_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "subject": {"type": "STRING"},
        "senderName": {"type": "STRING"},
        "senderEmail": {"type": "STRING"},
        "body": {"type": "STRING"},
        "redFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "explanation": {"type": "STRING"},
        "attackVector": {"type": "STRING"},
    },
    "required": ["subject", "senderName", "senderEmail", "body", "redFlags", "explanation"],
}

PHONE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "callerName": {"type": "STRING"},
        "callerRole": {"type": "STRING"},
        "scenario": {"type": "STRING"},
        "attackerScript": {"type": "STRING"},
        "redFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "explanation": {"type": "STRING"},
        "technique": {"type": "STRING"},
    },
    "required": ["scenario", "attackerScript", "redFlags", "explanation"],
}

ENGAGEMENT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "correct": {"type": "BOOLEAN"},
        "score": {"type": "NUMBER"},
        "feedback": {"type": "STRING"},
        "missedFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "correctFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["correct", "score", "feedback", "missedFlags", "correctFlags"],
}

GRADE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "NUMBER"},
        "missedFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "correctFlags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "feedback": {"type": "STRING"},
        "skillToImprove": {"type": "STRING"},
    },
    "required": ["score", "missedFlags", "correctFlags", "feedback"],
}


class GeminiClient:
    """Thin wrapper over the Gemini generateContent REST endpoint."""

    def __init__(self, api_key, model="gemini-2.5-flash",
                 tts_model="gemini-2.5-flash-preview-tts", timeout=60):
        self.api_key = api_key
        self.model = model
        self.tts_model = tts_model
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("GEMINI_API_KEY", ""),
            model=config.get("GEMINI_MODEL", "gemini-2.5-flash"),
            tts_model=config.get("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"),
            timeout=config.get("GEMINI_TIMEOUT", 60),
        )

    def _post(self, model, body) -> dict:
        if not self.api_key:
            raise UpstreamGenerationError("Gemini API key not set (GEMINI_API_KEY in .env).")
        try:
            # Key travels in a header so it never shows up in URLs or exception text.
            response = requests.post(
                f"{API_BASE}/{model}:generateContent",
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Gemini request failed: %s", type(exc).__name__)
            raise UpstreamGenerationError("AI service unreachable. Please try again.")

        text = response.text
        if response.status_code != 200:
            logger.warning("Gemini returned HTTP %s", response.status_code)
            raise UpstreamGenerationError(text or f"Gemini {response.status_code}")
        try:
            return json.loads(text)
        except ValueError:
            raise UpstreamGenerationError(text)

    @staticmethod
    def _first_part(data) -> dict:
        try:
            return data["candidates"][0]["content"]["parts"][0]
        except (KeyError, IndexError, TypeError):
            return {}

    def generate_text(self, prompt, system=None) -> str:
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return self._first_part(self._post(self.model, body)).get("text", "")

    def generate_json(self, prompt, schema) -> dict:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json", "responseSchema": schema},
        }
        text = self._first_part(self._post(self.model, body)).get("text", "")
        try:
            return json.loads(text)
        except ValueError:
            raise UpstreamGenerationError("AI returned an unreadable response.")

    def synthesize(self, text, voice="Charon"):
        """Return base64-encoded audio for ``text`` or None if the model sent none."""
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}},
            },
        }
        part = self._first_part(self._post(self.tts_model, body))
        return (part.get("inlineData") or {}).get("data")


def get_client() -> GeminiClient:
    return GeminiClient.from_config(current_app.config)


def _email_guidance(difficulty):
    if difficulty <= 2:
        return "use obvious red flags: misspellings, generic greetings, suspicious domains"
    if difficulty <= 3:
        return "use convincing finance language with subtle domain spoofing and urgency"
    return ("use highly targeted finance spear phishing: typosquatted bank/vendor domains, "
            "CFO impersonation, specific wire or invoice details")


def deepfake_hints(difficulty):
    if difficulty <= 2:
        return ["Unusually consistent pitch", "No natural breathing sounds", "Emotion doesn't match urgency"]
    if difficulty <= 3:
        return ["Pay attention to micro-pauses", "Listen for breathing patterns"]
    return ["Trust your instincts"]


def generate_email(client, difficulty) -> dict:
    prompt = (
        "Generate a realistic phishing email for finance-sector cybersecurity training. "
        "The target is a finance/accounting employee.\n"
        "Theme: finance-oriented attacks only, e.g. urgent wire transfer request, fake invoice or "
        "payment change, banking/account verification, CFO or executive impersonation, ACH or vendor "
        "payment redirect, investment or treasury scam, loan/refund fraud.\n"
        f"Difficulty: {difficulty}/5 (1=obvious spam, 3=convincing finance email, 5=targeted BEC/wire fraud).\n"
        f"At difficulty {difficulty}, {_email_guidance(difficulty)}.\n"
        "Include: subject, sender name, sender email (domain should look finance-related but suspicious "
        "scaled to difficulty), body in Markdown with embedded suspicious links, 3-6 red flags, "
        "explanation of the attack vector."
    )
    return client.generate_json(prompt, EMAIL_SCHEMA)


def generate_phone_call(client, difficulty, rng=None) -> dict:
    """Vishing script plus best-effort audio; the call proceeds without audio if TTS fails."""
    rng = rng or random.Random()
    scenario = rng.choice(PHONE_SCENARIOS)
    prompt = (
        "Generate a vishing (voice phishing) phone call script for finance-sector training. "
        "The target is a finance/accounting employee.\n"
        f"Difficulty: {difficulty}/5. Scenario: {scenario}\n"
        "Keep the scenario finance-focused (wires, payments, accounts, verification). Include: caller "
        "persona (name, role, org), scenario description, full attacker script (2-3 paragraphs, "
        "conversational), 4-6 red flags, explanation of technique used."
    )
    call = client.generate_json(prompt, PHONE_SCHEMA)
    try:
        audio = client.synthesize(call.get("attackerScript", "")[:PHONE_AUDIO_CHARS])
    except UpstreamGenerationError as exc:
        logger.warning("TTS failed, continuing without audio: %s", exc.message)
        audio = None
    return {"content": call, "audioBase64": audio}


def generate_deepfake(client, difficulty, rng=None) -> dict:
    """Audio clip that may or may not be synthetic. Audio failure fails the request."""
    rng = rng or random.Random()
    is_synthetic = rng.random() < SYNTHETIC_PROBABILITY
    script = rng.choice(DEEPFAKE_SCRIPTS)
    voice = rng.choice(SYNTHETIC_VOICES) if is_synthetic else REFERENCE_VOICE
    try:
        audio = client.synthesize(script, voice)
    except UpstreamGenerationError:
        raise UpstreamGenerationError("Audio generation failed")
    if not audio:
        raise UpstreamGenerationError("Audio generation failed")
    return {
        "content": {"script": script, "isSynthetic": is_synthetic},
        "audioBase64": audio,
        "contextHints": deepfake_hints(difficulty),
    }


def is_disengagement(transcript) -> bool:
    said = (transcript or "").strip()
    if not said:
        return True
    if len(said) >= DISENGAGE_MAX_CHARS:
        return False
    words = [w.strip(".,!?'\"").lower() for w in said.split()]
    return all(w in GREETING_WORDS for w in words if w)


def judge_phone_engagement(client, transcript, scenario, attacker_script="") -> dict:
    if is_disengagement(transcript):
        return {
            "correct": True,
            "score": 100,
            "feedback": "You hung up without engaging. The best response to a suspected vishing "
                        "call is to end it immediately.",
            "missedFlags": [],
            "correctFlags": ["Ended call without engaging"],
        }
    said = transcript.strip()
    prompt = (
        "You are a vishing (voice phishing) security trainer. The employee received a suspicious call. "
        f"Call scenario: {scenario}. Attacker script (what the caller said): "
        f"{(attacker_script or '')[:ATTACKER_SCRIPT_CHARS]}. The employee responded with: \"{said}\". "
        "They then ended the call.\n"
        "Assess: Did the employee engage in conversation (answer questions, give info, or continue "
        "talking) instead of hanging up immediately? If they engaged at all, that was the wrong decision. "
        "Return JSON with: correct (false if they engaged), score (0-100; 100 only if they said nothing "
        "substantive or hung up immediately), feedback (2-4 sentences: explain why engaging was wrong "
        "and that they should hang up immediately next time), missedFlags (array of what they did wrong, "
        "e.g. \"Engaged in conversation\"), correctFlags (array, empty if they engaged)."
    )
    return client.generate_json(prompt, ENGAGEMENT_SCHEMA)


def grade_flags(client, simulation_content, user_flags, sim_type="email") -> dict:
    flags = user_flags if isinstance(user_flags, list) else []
    content = simulation_content
    if isinstance(content, dict):
        # Audio payloads would blow the prompt's token budget.
        content = {k: v for k, v in content.items() if k != "audioBase64"}
    prompt = (
        "You are an expert cybersecurity analyst grading threat detection.\n"
        f"Type: {sim_type or 'email'}. Content: {json.dumps(content)}. "
        f"User flags: {', '.join(str(f) for f in flags) or '(none)'}.\n"
        "Score 0-100 based on accuracy. List correct and missed flags. Give 2-3 sentence actionable "
        "feedback. Suggest one skill to improve."
    )
    return client.generate_json(prompt, GRADE_SCHEMA)


def chat(client, message, context=None) -> str:
    system = "You are PhisherBot, a cybersecurity training AI. Be concise (2-4 sentences). Give actionable advice."
    if context:
        system += f" Current simulation context: {context}"
    return client.generate_text(message, system=system)
