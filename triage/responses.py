"""
Response Banks.

Templated assistant text for known intents, the symptom assessment dialogue
(empathy lines, question banks, acknowledgements), assessment advice and the
few messages that must be available in the user's language even when the
model provider is down.

Banks are written in the working language (English). The session manager
translates them for other languages through the language service; the
``LOCALIZED_*`` tables are used verbatim because they are needed exactly when
translation may be unavailable.
"""

from triage.languages import Language
from triage.models import AssessmentResult, CareUrgency

# ── Intent Templates ──────────────────────────────────────────────────────

INTENT_RESPONSES: dict[str, dict] = {
    "greeting": {
        "text": "Hello! I am your health assistant. How can I help you today?",
        "quick_replies": ["Health Question", "Vaccination Info", "Symptoms Check"],
    },
    "symptom_check": {
        "text": "I understand you're not feeling well. Can you tell me more about your symptoms?",
    },
    "vaccination_info": {
        "text": (
            "I can help you with vaccination information. For schedules and availability, "
            "your nearest health center can confirm what is due. What would you like to know?"
        ),
        "quick_replies": ["Child Vaccines", "Adult Vaccines", "Vaccine Schedule"],
    },
    "emergency": {
        "text": (
            "This seems urgent. Please call emergency services immediately at 108 "
            "or visit the nearest hospital."
        ),
    },
    "thanks": {
        "text": "You're welcome! Is there anything else I can help you with?",
    },
    "farewell": {
        "text": "Take care! If your symptoms change or worsen, please reach out again or see a doctor.",
    },
    "cancel_assessment": {
        "text": "No problem, I've stopped the questions. What else can I help you with?",
    },
}

TURN_LIMIT_RESPONSE = (
    "This conversation has reached the maximum number of turns. "
    "Please start a new conversation to continue."
)

DISCLAIMER = (
    "*Remember: This assessment is for informational purposes only. Always consult "
    "healthcare professionals for proper diagnosis and treatment.*"
)


# ── Localized Messages ────────────────────────────────────────────────────

# Both tables are sent without translation (the gateway may be the thing
# that failed), so every Language needs a native entry.

LOCALIZED_FALLBACK: dict[Language, str] = {
    Language.ENGLISH: "I'm experiencing some technical difficulties. Please try again in a moment.",
    Language.HINDI: "मुझे कुछ तकनीकी समस्या हो रही है। कृपया थोड़ी देर बाद पुनः प्रयास करें।",
    Language.TELUGU: "నాకు కొన్ని సాంకేతిక సమస్యలు ఉన్నాయి. దయచేసి కొద్దిసేపు తర్వాత మళ్లీ ప్రయత్నించండి.",
    Language.TAMIL: "எனக்கு சில தொழில்நுட்ப சிக்கல்கள் ஏற்பட்டுள்ளன. சிறிது நேரம் கழித்து மீண்டும் முயற்சிக்கவும்.",
    Language.BENGALI: "আমি কিছু প্রযুক্তিগত সমস্যার সম্মুখীন হচ্ছি। অনুগ্রহ করে কিছুক্ষণ পরে আবার চেষ্টা করুন।",
    Language.MARATHI: "मला काही तांत्रिक अडचणी येत आहेत. कृपया थोड्या वेळाने पुन्हा प्रयत्न करा.",
    Language.GUJARATI: "મને કેટલીક તકનીકી મુશ્કેલીઓ આવી રહી છે. કૃપા કરીને થોડી વાર પછી ફરી પ્રયાસ કરો.",
    Language.KANNADA: "ನನಗೆ ಕೆಲವು ತಾಂತ್ರಿಕ ತೊಂದರೆಗಳು ಎದುರಾಗಿವೆ. ದಯವಿಟ್ಟು ಸ್ವಲ್ಪ ಸಮಯದ ನಂತರ ಮತ್ತೆ ಪ್ರಯತ್ನಿಸಿ.",
    Language.MALAYALAM: "എനിക്ക് ചില സാങ്കേതിക പ്രശ്നങ്ങൾ നേരിടുന്നു. ദയവായി കുറച്ച് സമയത്തിന് ശേഷം വീണ്ടും ശ്രമിക്കുക.",
    Language.PUNJABI: "ਮੈਨੂੰ ਕੁਝ ਤਕਨੀਕੀ ਸਮੱਸਿਆਵਾਂ ਆ ਰਹੀਆਂ ਹਨ। ਕਿਰਪਾ ਕਰਕੇ ਥੋੜ੍ਹੀ ਦੇਰ ਬਾਅਦ ਦੁਬਾਰਾ ਕੋਸ਼ਿਸ਼ ਕਰੋ।",
    Language.URDU: "مجھے کچھ تکنیکی مشکلات کا سامنا ہے۔ براہ کرم تھوڑی دیر بعد دوبارہ کوشش کریں۔",
}

LOCALIZED_ESCALATION: dict[Language, tuple[str, str]] = {
    # (with worker name, without worker)
    Language.ENGLISH: (
        "I'm connecting you with {name}, a health professional who can better assist you.",
        "I'm connecting you with a health professional who can better assist you.",
    ),
    Language.HINDI: (
        "मैं आपको {name} से जोड़ रहा हूं, जो एक स्वास्थ्य पेशेवर हैं और आपकी बेहतर सहायता कर सकते हैं।",
        "मैं आपको एक स्वास्थ्य पेशेवर से जोड़ रहा हूं जो आपकी बेहतर सहायता कर सकते हैं।",
    ),
    Language.TELUGU: (
        "నేను మిమ్మల్ని {name} గారితో కలుపుతున్నాను, వారు మీకు మరింత బాగా సహాయం చేయగల ఆరోగ్య నిపుణులు.",
        "మీకు మరింత బాగా సహాయం చేయగల ఆరోగ్య నిపుణులతో నేను మిమ్మల్ని కలుపుతున్నాను.",
    ),
    Language.TAMIL: (
        "உங்களுக்கு சிறப்பாக உதவக்கூடிய சுகாதார நிபுணரான {name} அவர்களுடன் உங்களை இணைக்கிறேன்.",
        "உங்களுக்கு சிறப்பாக உதவக்கூடிய ஒரு சுகாதார நிபுணருடன் உங்களை இணைக்கிறேன்.",
    ),
    Language.BENGALI: (
        "আমি আপনাকে {name}-এর সাথে সংযুক্ত করছি, যিনি একজন স্বাস্থ্য পেশাদার এবং আপনাকে আরও ভালোভাবে সাহায্য করতে পারবেন।",
        "আমি আপনাকে একজন স্বাস্থ্য পেশাদারের সাথে সংযুক্ত করছি যিনি আপনাকে আরও ভালোভাবে সাহায্য করতে পারবেন।",
    ),
    Language.MARATHI: (
        "मी तुम्हाला {name} यांच्याशी जोडत आहे, जे आरोग्य व्यावसायिक आहेत आणि तुम्हाला अधिक चांगली मदत करू शकतात.",
        "मी तुम्हाला एका आरोग्य व्यावसायिकाशी जोडत आहे जे तुम्हाला अधिक चांगली मदत करू शकतात.",
    ),
    Language.GUJARATI: (
        "હું તમને {name} સાથે જોડી રહ્યો છું, જે આરોગ્ય વ્યાવસાયિક છે અને તમને વધુ સારી મદદ કરી શકે છે.",
        "હું તમને એક આરોગ્ય વ્યાવસાયિક સાથે જોડી રહ્યો છું જે તમને વધુ સારી મદદ કરી શકે છે.",
    ),
    Language.KANNADA: (
        "ನಿಮಗೆ ಉತ್ತಮವಾಗಿ ಸಹಾಯ ಮಾಡಬಲ್ಲ ಆರೋಗ್ಯ ವೃತ್ತಿಪರರಾದ {name} ಅವರೊಂದಿಗೆ ನಿಮ್ಮನ್ನು ಸಂಪರ್ಕಿಸುತ್ತಿದ್ದೇನೆ.",
        "ನಿಮಗೆ ಉತ್ತಮವಾಗಿ ಸಹಾಯ ಮಾಡಬಲ್ಲ ಆರೋಗ್ಯ ವೃತ್ತಿಪರರೊಂದಿಗೆ ನಿಮ್ಮನ್ನು ಸಂಪರ್ಕಿಸುತ್ತಿದ್ದೇನೆ.",
    ),
    Language.MALAYALAM: (
        "നിങ്ങളെ മികച്ച രീതിയിൽ സഹായിക്കാൻ കഴിയുന്ന ആരോഗ്യ വിദഗ്ധരായ {name}-മായി ഞാൻ നിങ്ങളെ ബന്ധിപ്പിക്കുന്നു.",
        "നിങ്ങളെ മികച്ച രീതിയിൽ സഹായിക്കാൻ കഴിയുന്ന ഒരു ആരോഗ്യ വിദഗ്ധനുമായി ഞാൻ നിങ്ങളെ ബന്ധിപ്പിക്കുന്നു.",
    ),
    Language.PUNJABI: (
        "ਮੈਂ ਤੁਹਾਨੂੰ {name} ਨਾਲ ਜੋੜ ਰਿਹਾ ਹਾਂ, ਜੋ ਇੱਕ ਸਿਹਤ ਮਾਹਿਰ ਹਨ ਅਤੇ ਤੁਹਾਡੀ ਬਿਹਤਰ ਮਦਦ ਕਰ ਸਕਦੇ ਹਨ।",
        "ਮੈਂ ਤੁਹਾਨੂੰ ਇੱਕ ਸਿਹਤ ਮਾਹਿਰ ਨਾਲ ਜੋੜ ਰਿਹਾ ਹਾਂ ਜੋ ਤੁਹਾਡੀ ਬਿਹਤਰ ਮਦਦ ਕਰ ਸਕਦੇ ਹਨ।",
    ),
    Language.URDU: (
        "میں آپ کو {name} سے جوڑ رہا ہوں، جو ایک طبی ماہر ہیں اور آپ کی بہتر مدد کر سکتے ہیں۔",
        "میں آپ کو ایک طبی ماہر سے جوڑ رہا ہوں جو آپ کی بہتر مدد کر سکتے ہیں۔",
    ),
}

EMERGENCY_NOTICE = (
    "🚨 If this is a medical emergency, call **108** or go to the nearest hospital right away."
)


def _validate_localized_tables() -> None:
    for table_name, table in (("LOCALIZED_FALLBACK", LOCALIZED_FALLBACK),
                              ("LOCALIZED_ESCALATION", LOCALIZED_ESCALATION)):
        missing = [lang for lang in Language if lang not in table]
        if missing:
            raise RuntimeError(f"{table_name} is missing entries for: {missing}")
    for lang, (with_worker, _) in LOCALIZED_ESCALATION.items():
        if "{name}" not in with_worker:
            raise RuntimeError(f"LOCALIZED_ESCALATION[{lang}] has no {{name}} placeholder")


_validate_localized_tables()


def fallback_message(language: Language) -> str:
    return LOCALIZED_FALLBACK[language]


def escalation_message(language: Language, worker_name: str | None) -> str:
    with_worker, without_worker = LOCALIZED_ESCALATION[language]
    return with_worker.format(name=worker_name) if worker_name else without_worker


# ── Assessment Dialogue ───────────────────────────────────────────────────

EMPATHY_RESPONSES: dict[str, str] = {
    "fever": (
        "I understand you're feeling unwell with a fever. That can be quite uncomfortable. "
        "Let me ask you a few questions to better understand your condition."
    ),
    "headache": (
        "I'm sorry to hear you're experiencing a headache. I'd like to ask you some questions "
        "to understand what might be causing it."
    ),
    "cough": (
        "A cough can be really bothersome, especially if it's been going on for a while. "
        "I'd like to learn more about your symptoms."
    ),
    "stomach_pain": (
        "Stomach pain can be very uncomfortable and concerning. Let me ask you some questions "
        "to understand what might be causing it."
    ),
    "sore_throat": (
        "A sore throat can make eating and talking difficult. Let me ask you a few questions "
        "about it."
    ),
    "general": (
        "I can see you're not feeling well, and I want to help you understand your symptoms "
        "better. Let me ask you a few questions."
    ),
}

QUESTION_BANK: dict[str, dict[str, str]] = {
    "fever": {
        "duration": "Since when have you been experiencing this fever? Has it been a few hours, days, or longer?",
        "severity": "How high would you say your fever is? Do you feel very hot, or is it a mild temperature?",
        "associated_symptoms": (
            "Along with the fever, are you experiencing any of these symptoms: cough, body aches, "
            "chills, headache, sore throat, or loss of appetite?"
        ),
        "triggers": (
            "Did anything specific happen before the fever started? Any recent travel, exposure "
            "to sick people, or changes in your routine?"
        ),
    },
    "headache": {
        "duration": "How long have you been having this headache? Did it start today or has it been going on for a while?",
        "severity": "How would you describe the intensity of your headache? Is it mild, moderate, or quite severe?",
        "location": "Where exactly do you feel the headache? Is it on one side, both sides, or all over your head?",
        "associated_symptoms": (
            "Besides the headache, do you have any nausea, vomiting, sensitivity to light, "
            "neck stiffness, or vision problems?"
        ),
        "triggers": "Did anything trigger this headache? Stress, lack of sleep, certain foods, or screen time?",
    },
    "cough": {
        "duration": "How long have you had this cough? Has it been getting better, worse, or staying the same?",
        "severity": "How bad is the cough? Is it keeping you awake at night, or is it mild?",
        "associated_symptoms": (
            "Along with the cough, do you have fever, sore throat, runny nose, body aches, or phlegm?"
        ),
        "triggers": "Does anything make the cough worse, like dust, cold air, smoke, or lying down?",
    },
    "stomach_pain": {
        "duration": "How long have you been experiencing this stomach pain? Did it start suddenly or gradually?",
        "severity": "How would you rate the pain? Is it a mild discomfort, moderate pain, or quite severe?",
        "location": "Where exactly do you feel the pain? Upper part, lower part, right side, left side, or all over?",
        "associated_symptoms": (
            "Along with the stomach pain, have you experienced nausea, vomiting, diarrhea, "
            "bloating, or loss of appetite?"
        ),
        "triggers": "Did you eat anything unusual before the pain started? Or have you been under stress lately?",
    },
    "sore_throat": {
        "duration": "How long has your throat been sore?",
        "severity": "How painful is it? Is it mild, or is it hard to swallow?",
        "associated_symptoms": "Along with the sore throat, do you have fever, cough, runny nose, or swollen glands?",
        "triggers": "Have you been around anyone with a cold or sore throat recently?",
    },
    "general": {
        "duration": "Can you describe what you're experiencing? When did these symptoms start?",
        "severity": "How would you describe how you feel: mild, moderate, or severe?",
        "associated_symptoms": "Are you noticing anything else, such as fever, tiredness, dizziness, or nausea?",
        "triggers": "Did anything seem to bring this on, like food, travel, stress, or contact with someone sick?",
    },
}

ACKNOWLEDGEMENTS: dict[str, str] = {
    "duration": "I see, thank you for letting me know about the timing.",
    "severity": "Thank you for describing that to me.",
    "location": "Thank you, that helps me understand where it hurts.",
    "associated_symptoms": "Thank you for sharing those additional symptoms.",
    "triggers": "That's helpful to know.",
}

DEFAULT_ACKNOWLEDGEMENT = "Thank you for sharing that."


def question_for(symptom: str, question_type: str) -> str:
    bank = QUESTION_BANK.get(symptom, QUESTION_BANK["general"])
    return bank.get(question_type) or QUESTION_BANK["general"][question_type]


# ── Assessment Advice ─────────────────────────────────────────────────────

IMMEDIATE_ACTIONS: dict[str, list[str]] = {
    "fever": ["Rest and stay hydrated", "Take temperature regularly", "Use fever-reducing medication if needed"],
    "headache": ["Rest in a quiet, dark room", "Apply cold or warm compress", "Stay hydrated"],
    "cough": ["Drink warm fluids", "Avoid smoke and dust", "Rest your voice"],
    "stomach_pain": ["Sip water or oral rehydration solution", "Eat light, bland food", "Avoid spicy and oily meals"],
    "default": ["Rest and monitor symptoms", "Stay hydrated", "Avoid strenuous activities"],
}

PREVENTIVE_MEASURES: dict[str, list[str]] = {
    "fever": ["Wash hands frequently", "Avoid close contact with sick people", "Get adequate sleep", "Maintain good nutrition"],
    "headache": ["Manage stress", "Get regular sleep", "Stay hydrated", "Limit screen time"],
    "stomach_pain": ["Drink clean, boiled water", "Wash hands before eating", "Avoid street food that is not freshly cooked"],
    "default": ["Maintain good hygiene", "Get adequate rest", "Eat nutritious food", "Exercise regularly"],
}

HOME_REMEDIES: dict[str, list[str]] = {
    "fever": ["Drink plenty of fluids", "Take lukewarm baths", "Wear light clothing", "Use a fan or cool compress"],
    "headache": ["Apply ice pack or warm compress", "Massage temples gently", "Practice relaxation techniques"],
    "cough": ["Drink warm liquids", "Use honey (for adults)", "Stay in a humid environment", "Avoid irritants"],
    "sore_throat": ["Gargle with warm salt water", "Drink warm liquids", "Use honey (for adults)"],
    "default": ["Rest adequately", "Stay hydrated", "Eat light, nutritious meals"],
}

WHEN_TO_SEE_DOCTOR: dict[CareUrgency, str] = {
    CareUrgency.IMMEDIATE: "Seek medical attention immediately or call emergency services.",
    CareUrgency.SAME_DAY: "Contact your doctor today or visit a clinic.",
    CareUrgency.FEW_DAYS: "If symptoms persist or worsen over the next 2-3 days, consult a doctor.",
    CareUrgency.HOME_CARE: "Monitor symptoms and see a doctor if they worsen or don't improve in a week.",
}

RED_FLAG_WARNINGS: dict[str, list[str]] = {
    "fever": ["Temperature above 103°F (39.4°C)", "Difficulty breathing", "Severe headache", "Persistent vomiting"],
    "headache": ["Sudden, severe headache", "Neck stiffness", "Vision changes", "Confusion or altered consciousness"],
    "cough": ["Coughing up blood", "Difficulty breathing", "Chest pain", "Cough lasting more than three weeks"],
    "stomach_pain": ["Blood in stool or vomit", "Severe pain in the lower right abdomen", "Rigid, hard belly", "Fainting"],
    "sore_throat": ["Difficulty swallowing or drooling", "Difficulty breathing", "Muffled voice"],
    "default": ["Severe or worsening symptoms", "Difficulty breathing", "Chest pain", "Loss of consciousness"],
}


def render_assessment(result: AssessmentResult) -> str:
    """Format an assessment result as the user-facing message."""
    lines = ["Based on our conversation, here's my assessment:", ""]

    if result.conditions:
        lines.append("**Possible Conditions:**")
        for candidate in result.conditions:
            lines.append(f"• {candidate.condition} ({candidate.likelihood.value} likelihood)")
        lines.append("")

    recs = result.recommendations
    if recs.immediate_actions:
        lines.append("**Immediate Actions:**")
        lines.extend(f"• {action}" for action in recs.immediate_actions)
        lines.append("")

    lines.append(f"**Medical Advice:** {recs.when_to_see_doctor}")
    lines.append("")

    if recs.home_remedies:
        lines.append("**Home Care Tips:**")
        lines.extend(f"• {remedy}" for remedy in recs.home_remedies)
        lines.append("")

    if result.red_flags:
        lines.append("**⚠️ Seek Immediate Medical Attention If:**")
        lines.extend(f"• {flag}" for flag in result.red_flags)
        lines.append("")

    lines.append(DISCLAIMER)
    return "\n".join(lines)
