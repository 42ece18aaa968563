"""User-facing message catalogs (Hebrew and English)."""

from datetime import datetime
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from roster_gate.services.errors import ErrorKind

DISPLAY_TIMEZONE = ZoneInfo("Asia/Jerusalem")

ERROR_MESSAGES: Dict[str, Dict[ErrorKind, str]] = {
    "he": {
        ErrorKind.VALIDATION: "הנתונים שהוזנו אינם תקינים",
        ErrorKind.RATE_LIMITED: "יותר מדי ניסיונות. נסה שוב ב-{reset_time}",
        ErrorKind.SESSION_NOT_FOUND: "לא נמצא קוד אימות פעיל למספר זה",
        ErrorKind.ALREADY_USED: "קוד האימות כבר נוצל",
        ErrorKind.EXPIRED: "קוד האימות פג תוקף",
        ErrorKind.CODE_MISMATCH: "קוד האימות שגוי",
        ErrorKind.ATTEMPTS_EXHAUSTED: "יותר מדי ניסיונות שגויים. בקש קוד חדש",
        ErrorKind.GATEWAY: "שגיאה בשליחת הודעה. אנא נסה שוב מאוחר יותר.",
        ErrorKind.PERSONNEL_NOT_FOUND: "המספר האישי לא נמצא ברשימת המורשים. פנה למנהל המערכת.",
        ErrorKind.ALREADY_REGISTERED: "מספר אישי זה כבר רשום במערכת. יש להתחבר לחשבון הקיים.",
        ErrorKind.PHONE_NOT_VERIFIED: "יש לאמת את מספר הטלפון לפני השלמת ההרשמה",
        ErrorKind.DUPLICATE_IDENTIFIER: "המספר האישי כבר קיים במערכת",
        ErrorKind.UNAUTHORIZED: "אין הרשאה לבצע פעולה זו",
        ErrorKind.INFRASTRUCTURE: "שגיאה פנימית במערכת. אנא נסה שוב מאוחר יותר.",
    },
    "en": {
        ErrorKind.VALIDATION: "The submitted details are invalid",
        ErrorKind.RATE_LIMITED: "Too many attempts. Try again at {reset_time}",
        ErrorKind.SESSION_NOT_FOUND: "No active verification code was found for this number",
        ErrorKind.ALREADY_USED: "This verification code has already been used",
        ErrorKind.EXPIRED: "This verification code has expired",
        ErrorKind.CODE_MISMATCH: "The verification code is incorrect",
        ErrorKind.ATTEMPTS_EXHAUSTED: "Too many incorrect attempts. Request a new code",
        ErrorKind.GATEWAY: "We could not send the message. Please try again later.",
        ErrorKind.PERSONNEL_NOT_FOUND: "This ID is not on the authorized roster. Please contact your administrator.",
        ErrorKind.ALREADY_REGISTERED: "This ID is already registered. Please sign in instead.",
        ErrorKind.PHONE_NOT_VERIFIED: "Verify your phone number before completing registration",
        ErrorKind.DUPLICATE_IDENTIFIER: "This ID already exists on the roster",
        ErrorKind.UNAUTHORIZED: "You are not allowed to perform this action",
        ErrorKind.INFRASTRUCTURE: "An internal error occurred. Please try again later.",
    },
}

SUCCESS_MESSAGES: Dict[str, Dict[str, str]] = {
    "he": {
        "otp_sent": "קוד אימות נשלח בהצלחה",
        "otp_verified": "קוד האימות אומת בהצלחה",
        "personnel_found": "המספר האישי אומת",
        "registration_claimed": "ההרשמה הושלמה בהצלחה",
        "sms_body": "קוד האימות שלך: {code}\n\nקוד זה תקף למשך {minutes} דקות בלבד.\nצה\"ל - יחידת סיירת גבעתי",
    },
    "en": {
        "otp_sent": "Verification code sent",
        "otp_verified": "Verification code accepted",
        "personnel_found": "ID verified",
        "registration_claimed": "Registration completed",
        "sms_body": "Your verification code: {code}\n\nThis code is valid for {minutes} minutes only.\nIDF - Givati Reconnaissance Unit",
    },
}


def error_message(kind: ErrorKind, locale: str = "he", reset_time: Optional[datetime] = None) -> str:
    """Localized message for a failure kind."""
    catalog = ERROR_MESSAGES.get(locale, ERROR_MESSAGES["he"])
    template = catalog[kind]
    if kind is ErrorKind.RATE_LIMITED:
        if reset_time is not None:
            when = reset_time.astimezone(DISPLAY_TIMEZONE).strftime("%H:%M")
        else:
            when = "מספר דקות" if locale == "he" else "a few minutes"
        return template.format(reset_time=when)
    return template


def success_message(key: str, locale: str = "he", **params) -> str:
    """Localized success message, formatted with ``params``."""
    catalog = SUCCESS_MESSAGES.get(locale, SUCCESS_MESSAGES["he"])
    return catalog[key].format(**params)
