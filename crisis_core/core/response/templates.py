"""
Crisis response templates.

Base scripts have three tiers per category. Tone escalates across tiers;
every tier keeps the category's primary hotline.
"""

from crisis_core.safety.models import CrisisType, PhrasingTier

# ==================================
# Base crisis scripts
# ==================================

BASE_SCRIPTS: dict[CrisisType, dict[PhrasingTier, str]] = {
    CrisisType.SUICIDE: {
        PhrasingTier.INITIAL: (
            "I'm very concerned about what you're sharing regarding thoughts of suicide. "
            "This is serious, and it's important you speak with a crisis professional right away. "
            "Please call the 988 Suicide & Crisis Lifeline (call or text 988) immediately, "
            "or go to your nearest emergency room."
        ),
        PhrasingTier.FOLLOWUP: (
            "I'm still very worried about you, and I'm glad you're telling me this. "
            "Thoughts of ending your life deserve real support from someone trained to help. "
            "The 988 Suicide & Crisis Lifeline is there right now, day or night: call or text 988. "
            "If you feel you might act on these thoughts, please call 911 or go to an emergency room."
        ),
        PhrasingTier.ESCALATED: (
            "I need to be direct because your safety matters more than anything else we talk about. "
            "Please contact the 988 Suicide & Crisis Lifeline now by calling or texting 988, "
            "or call 911 if you are in immediate danger. "
            "If you can, move away from anything you could use to hurt yourself and reach out to someone nearby."
        ),
    },
    CrisisType.SELF_HARM: {
        PhrasingTier.INITIAL: (
            "I'm very concerned about what you're sharing regarding self-harm. "
            "Your safety is important, and it would be beneficial to speak with a crisis professional "
            "who can provide immediate support. The 988 Suicide & Crisis Lifeline (call or text 988) "
            "is available 24/7."
        ),
        PhrasingTier.FOLLOWUP: (
            "I keep coming back to what you said about hurting yourself, because it matters. "
            "You don't have to handle these urges alone. A counselor at 988 (call or text) "
            "can talk through what's happening right now, without judgement."
        ),
        PhrasingTier.ESCALATED: (
            "I'm genuinely worried about your safety. Please reach out to the 988 Suicide & Crisis Lifeline "
            "by calling or texting 988 now. If you have hurt yourself or are about to, "
            "please call 911 or go to the nearest emergency room."
        ),
    },
    CrisisType.EATING_DISORDER: {
        PhrasingTier.INITIAL: (
            "I'm concerned about what you're sharing regarding your eating patterns. "
            "This sounds serious, and it's important that you speak with a healthcare professional. "
            "The National Eating Disorders Association (NEDA) helpline (1-800-931-2237) "
            "can provide support and resources."
        ),
        PhrasingTier.FOLLOWUP: (
            "I'm still thinking about what you told me about eating, and I'm concerned for your health. "
            "Going without food or feeling controlled by it can affect your body quickly. "
            "The NEDA helpline at 1-800-931-2237 can help you find support that fits."
        ),
        PhrasingTier.ESCALATED: (
            "I want to be honest that I'm worried about your physical safety right now. "
            "If you feel faint, dizzy or unwell, please get medical care today or call 911. "
            "For ongoing support, the NEDA helpline is at 1-800-931-2237."
        ),
    },
    CrisisType.SUBSTANCE_USE: {
        PhrasingTier.INITIAL: (
            "I'm concerned about what you're sharing regarding substance use. "
            "This situation sounds serious, and it's important that you speak with a healthcare professional. "
            "The SAMHSA National Helpline (1-800-662-4357) provides free, confidential, "
            "24/7 treatment referral and information."
        ),
        PhrasingTier.FOLLOWUP: (
            "I hear how hard this is, and I'm still concerned about your substance use. "
            "You don't need to have it all figured out to ask for help. "
            "The SAMHSA National Helpline (1-800-662-4357) can talk through options confidentially."
        ),
        PhrasingTier.ESCALATED: (
            "I'm worried about your safety. If you've taken more than usual or feel unwell, "
            "please call 911 right away. When you're able, the SAMHSA National Helpline "
            "(1-800-662-4357) is available 24/7."
        ),
    },
    CrisisType.GENERAL_CRISIS: {
        PhrasingTier.INITIAL: (
            "I'm concerned about what you're sharing. This sounds like a difficult situation "
            "that would benefit from immediate professional support. "
            "The 988 Suicide & Crisis Lifeline (call or text 988) can provide guidance and resources."
        ),
        PhrasingTier.FOLLOWUP: (
            "It sounds like things are still really hard right now, and I'm concerned. "
            "You deserve support from someone who can be there in real time. "
            "You can call or text 988 any time to talk with a trained counselor."
        ),
        PhrasingTier.ESCALATED: (
            "I'm genuinely worried about you. Please reach out to 988 by call or text now, "
            "and if you feel unsafe, call 911 or go to your nearest emergency room."
        ),
    },
}


# ==================================
# Location inquiry (asked at most once per session)
# ==================================

LOCATION_INQUIRIES: dict[CrisisType, str] = {
    CrisisType.SUICIDE: (
        "To help connect you with crisis services close to you, "
        "could you let me know what area or city you're in right now?"
    ),
    CrisisType.SELF_HARM: (
        "If you're comfortable sharing, what city or county are you in? "
        "I can point you to support nearby."
    ),
    CrisisType.EATING_DISORDER: (
        "There may be eating disorder programs near you. "
        "What area or city are you in, if you don't mind sharing?"
    ),
    CrisisType.SUBSTANCE_USE: (
        "Treatment options vary by area. Could you tell me what city or county you're in "
        "so I can share local programs?"
    ),
    CrisisType.GENERAL_CRISIS: (
        "Could you let me know what area or city you're in? "
        "I'd like to share support that's close by."
    ),
}


# ==================================
# Resource framing
# ==================================

LOCAL_RESOURCES_INTRO = "Since you're in {place}, here are some options close to you:"
NATIONAL_RESOURCES_INTRO = "Here are some options available wherever you are:"
LOCATION_REPLY_INTRO = "Thank you for telling me where you are. Here are some resources in {place}:"


# ==================================
# Refusal scripts (level 0-3)
# ==================================

REFUSAL_SCRIPTS: list[str] = [
    (
        "I hear that you're not ready to reach out to those resources right now, and that's understandable. "
        "Sometimes it takes time to feel ready for that step. Having someone who just listens can be valuable too. "
        "Maybe there are smaller steps that could feel more manageable, like just learning what's available, "
        "without any commitment to use it right now?"
    ),
    (
        "I understand those resources don't feel right for you at this moment. That's okay. "
        "I'd like to understand what feels concerning about reaching out. "
        "Is it talking to someone new, or worrying about what they might say, or something else? "
        "Knowing the 'what' behind the hesitation can help us find support that actually fits."
    ),
    (
        "I can see that reaching out for professional help doesn't feel like the right step, "
        "and I've heard you say that a few times now. I respect that, and I'm not trying to pressure you. "
        "I'm also genuinely concerned about you. What would need to be different for getting help to feel okay?"
    ),
    (
        "I've been listening to you tell me that professional resources don't feel right, and I respect that. "
        "I also want to be honest: I'm concerned about you, and that concern isn't going away. "
        "I care about what happens to you, and I want to keep talking with you about what you're going through. "
        "Can we figure out together what kind of support would feel helpful right now?"
    ),
]


# ==================================
# Total-failure fallback
# ==================================

SAFETY_FALLBACK_RESPONSE = (
    "I want to make sure you're safe. If you're having thoughts of harming yourself or are in crisis, "
    "please call or text the 988 Suicide & Crisis Lifeline now, or call 911 if you're in immediate danger. "
    "I'm here to keep talking with you."
)
