# --- Student-facing conversation handlers ---
import asyncio
import html
import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import ContextTypes

from . import admin, catalog
from .calculator import breakdown, compute_cgpa, compute_gpa, format_breakdown_line, format_gpa
from .grades import get_grade_by_point
from .reports import format_date, render_report
from .sessions import (
    GPA_RANGE,
    SCORE_RANGE,
    AwaitingBroadcast,
    AwaitingVerification,
    CgpaEntry,
    ScoreEntry,
    Selecting,
    parse_number,
)
from .storage import build_cgpa_record, build_gpa_record, new_verification_id, student_name

logger = logging.getLogger(__name__)

GPA_BUTTON = '📊 Calculate GPA'
CGPA_BUTTON = '🎓 Calculate CGPA'
HISTORY_BUTTON = '🕘 My History'
VERIFY_BUTTON = '🔍 Verify Result'
HELP_BUTTON = 'ℹ️ Help'

MAIN_MENU = ReplyKeyboardMarkup(
    [[GPA_BUTTON, CGPA_BUTTON], [HISTORY_BUTTON, VERIFY_BUTTON], [HELP_BUTTON]],
    resize_keyboard=True,
)

HISTORY_LIMIT = 5
SORRY = "😔 Sorry, something went wrong on our side. Please try again later."


def _keyboard(options):
    return ReplyKeyboardMarkup([[o] for o in options], one_time_keyboard=True, resize_keyboard=True)


def profile_from_user(user) -> dict:
    return {
        'id': user.id,
        'username': user.username or '',
        'first_name': user.first_name or '',
        'last_name': user.last_name or '',
    }


async def track_user(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Runs before every other handler and records the user's last activity."""
    user = update.effective_user
    if user is None:
        return
    try:
        await context.bot_data['storage'].upsert_user(profile_from_user(user))
    except Exception:
        logger.exception("Could not upsert user %s", user.id)


# --- Commands and menu items ---

async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    context.bot_data['sessions'].pop(update.effective_chat.id)
    await update.message.reply_html(
        f"Hi {user.mention_html()}! 👋 I'm the AAU GPA Calculator bot.\n\n"
        "I'll walk you through your courses one by one and calculate your semester GPA, "
        "or combine two semesters into your CGPA.\n\n"
        "<b>Pick an option from the menu below.</b>",
        reply_markup=MAIN_MENU,
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_html(
        "<b>How it works</b>\n"
        f"{GPA_BUTTON}: choose your year, semester and program, then send the score (0–100) of each course.\n"
        f"{CGPA_BUTTON}: send your Semester 1 and Semester 2 GPAs (0–4).\n"
        f"{HISTORY_BUTTON}: your last {HISTORY_LIMIT} calculations.\n"
        f"{VERIFY_BUTTON}: check a result by its verification ID.\n\n"
        "/start - main menu\n"
        "/verify &lt;id&gt; - verify a result\n"
        "/cancel - stop the current calculation",
        reply_markup=MAIN_MENU,
    )


async def cancel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    context.bot_data['sessions'].pop(update.effective_chat.id)
    await update.message.reply_text(
        "Calculation cancelled. Type /start anytime to begin again.", reply_markup=MAIN_MENU
    )


async def calculate_gpa(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    context.bot_data['sessions'].set(update.effective_chat.id, Selecting())
    await update.message.reply_text("📘 Select your academic year:", reply_markup=_keyboard(catalog.years()))


async def calculate_cgpa(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    context.bot_data['sessions'].set(update.effective_chat.id, CgpaEntry())
    await update.message.reply_html(
        "🎓 <b>CGPA calculation</b>\n\nEnter your <b>Semester 1</b> GPA (0.00–4.00):",
        reply_markup=ReplyKeyboardRemove(),
    )


async def history_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    try:
        records = await context.bot_data['storage'].query_by_user(update.effective_user.id, HISTORY_LIMIT)
    except Exception:
        logger.exception("History lookup failed for %s", update.effective_user.id)
        await update.message.reply_text(SORRY)
        return

    if not records:
        await update.message.reply_text("You have no saved calculations yet.", reply_markup=MAIN_MENU)
        return

    lines = [f"🕘 <b>Your last {len(records)} calculations</b>\n"]
    for r in records:
        lines.append(
            f"• {format_date(r.get('timestamp', ''))} · {r.get('type', 'GPA')} "
            f"<b>{r.get('gpa')}</b> ({r.get('grade', '?')}) · <code>{r.get('verificationId', '-')}</code>"
        )
    await update.message.reply_html("\n".join(lines), reply_markup=MAIN_MENU)


async def verify_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if context.args:
        await _verify(update, context, context.args[0])
        return
    context.bot_data['sessions'].set(update.effective_chat.id, AwaitingVerification())
    await update.message.reply_text("🔍 Send the verification ID (e.g. GPA-1A2B3C4D):",
                                    reply_markup=ReplyKeyboardRemove())


MENU_ACTIONS = {
    GPA_BUTTON: calculate_gpa,
    CGPA_BUTTON: calculate_cgpa,
    HISTORY_BUTTON: history_command,
    VERIFY_BUTTON: verify_command,
    HELP_BUTTON: help_command,
}


# --- Free text routing ---

async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = (update.message.text or '').strip()
    action = MENU_ACTIONS.get(text)
    if action is not None:
        await action(update, context)
        return

    state = context.bot_data['sessions'].get(update.effective_chat.id)
    if state is None:
        return
    if isinstance(state, Selecting):
        await _handle_selection(update, context, state, text)
    elif isinstance(state, ScoreEntry):
        await _handle_score(update, context, state, text)
    elif isinstance(state, CgpaEntry):
        await _handle_semester_gpa(update, context, state, text)
    elif isinstance(state, AwaitingVerification):
        context.bot_data['sessions'].pop(update.effective_chat.id)
        await _verify(update, context, text)
    elif isinstance(state, AwaitingBroadcast):
        context.bot_data['sessions'].pop(update.effective_chat.id)
        await admin.run_broadcast(update, context, update.message.text)


async def _handle_selection(update, context, state: Selecting, text: str) -> None:
    sessions = context.bot_data['sessions']
    chat_id = update.effective_chat.id

    if state.year is None:
        if text not in catalog.years():
            await update.message.reply_text("Please choose a year from the keyboard.",
                                            reply_markup=_keyboard(catalog.years()))
            return
        state.year = text
        sessions.set(chat_id, state)
        await update.message.reply_text("🧭 Choose your semester:",
                                        reply_markup=_keyboard(catalog.semesters(state.year)))
        return

    if state.semester is None:
        if text not in catalog.semesters(state.year):
            await update.message.reply_text("Please choose a semester from the keyboard.",
                                            reply_markup=_keyboard(catalog.semesters(state.year)))
            return
        programs = catalog.programs(state.year, text)
        if not programs:
            await update.message.reply_text(f"🚧 {state.year} {text} courses are coming soon.",
                                            reply_markup=_keyboard(catalog.semesters(state.year)))
            return
        if len(programs) == 1:
            await _begin_scores(update, context, state.year, text, programs[0])
            return
        state.semester = text
        sessions.set(chat_id, state)
        await update.message.reply_text("🏫 Choose your program:", reply_markup=_keyboard(programs))
        return

    programs = catalog.programs(state.year, state.semester)
    if text not in programs:
        await update.message.reply_text("Please choose a program from the keyboard.",
                                        reply_markup=_keyboard(programs))
        return
    await _begin_scores(update, context, state.year, state.semester, text)


async def _begin_scores(update, context, year: str, semester: str, program: str) -> None:
    courses = catalog.get_courses(year, semester, program)
    entry = ScoreEntry(year=year, semester=semester, program=program, courses=courses)
    context.bot_data['sessions'].set(update.effective_chat.id, entry)
    await update.message.reply_html(
        f"✍️ {len(courses)} courses, {catalog.total_credits(courses)} credits. Send each score out of 100.\n\n"
        f"📌 Enter score for: <b>{html.escape(entry.current_course.name)}</b>",
        reply_markup=ReplyKeyboardRemove(),
    )


async def _handle_score(update, context, entry: ScoreEntry, text: str) -> None:
    chat_id = update.effective_chat.id
    score = parse_number(text, *SCORE_RANGE)
    if score is None:
        await update.message.reply_html(
            "❌ Enter a valid score (0–100)\n"
            f"📌 Enter score for: <b>{html.escape(entry.current_course.name)}</b>"
        )
        return

    entry.scores.append(score)
    entry.index += 1
    if not entry.done:
        context.bot_data['sessions'].set(chat_id, entry)
        await update.message.reply_html(
            f"Next ({entry.index + 1}/{len(entry.courses)}): <b>{html.escape(entry.current_course.name)}</b>"
        )
        return

    # Session is gone before any remote call.
    context.bot_data['sessions'].pop(chat_id)
    await _finish_gpa(update, context, entry)


async def _finish_gpa(update, context, entry: ScoreEntry) -> None:
    gpa = compute_gpa(entry.scores, entry.courses)
    grade = get_grade_by_point(round(gpa, 2))
    lines = [html.escape(format_breakdown_line(r)) for r in breakdown(entry.scores, entry.courses)]
    message = (
        "📊 <b>GPA Results</b>\n\n" + "\n".join(lines)
        + f"\n\n🎯 <b>Final GPA: {format_gpa(gpa)}</b> ({grade.letter})"
    )
    logger.info("User %s finished %s %s %s with GPA %.2f",
                update.effective_user.id, entry.year, entry.semester, entry.program, gpa)

    verification_id = new_verification_id()
    record = build_gpa_record(profile_from_user(update.effective_user), entry, gpa, verification_id)
    await _send_result(update, context, message, record)


async def _handle_semester_gpa(update, context, state: CgpaEntry, text: str) -> None:
    chat_id = update.effective_chat.id
    value = parse_number(text, *GPA_RANGE)
    if value is None:
        await update.message.reply_html(
            f"❌ Enter a valid GPA (0.00–4.00)\nEnter your <b>Semester {state.step + 1}</b> GPA:"
        )
        return

    state.gpas.append(value)
    state.step += 1
    if state.step < 2:
        context.bot_data['sessions'].set(chat_id, state)
        await update.message.reply_html(f"Enter your <b>Semester {state.step + 1}</b> GPA (0.00–4.00):")
        return

    context.bot_data['sessions'].pop(chat_id)
    credits = context.bot_data['settings'].cgpa_credits
    cgpa = compute_cgpa(state.gpas[0], state.gpas[1], *credits)
    grade = get_grade_by_point(round(cgpa, 2))
    message = (
        "🎓 <b>CGPA Results</b>\n\n"
        f"Semester 1: {format_gpa(state.gpas[0])} x {credits[0]}\n"
        f"Semester 2: {format_gpa(state.gpas[1])} x {credits[1]}\n\n"
        f"🎯 <b>CGPA: {format_gpa(cgpa)}</b> ({grade.letter})"
    )
    logger.info("User %s finished CGPA %.2f", update.effective_user.id, cgpa)

    verification_id = new_verification_id()
    record = build_cgpa_record(profile_from_user(update.effective_user), state.gpas, credits, cgpa, verification_id)
    await _send_result(update, context, message, record)


async def _send_result(update, context, message: str, record: dict) -> None:
    markup = None
    try:
        await context.bot_data['storage'].append(record)
    except Exception:
        logger.exception("Could not store %s result for %s", record['type'], record['userId'])
        message += "\n\n⚠️ Sorry, your result could not be saved right now, so no report is available."
    else:
        message += f"\n\n🔐 Verification ID: <code>{record['verificationId']}</code>"
        markup = InlineKeyboardMarkup([[
            InlineKeyboardButton('📄 Download PDF report', callback_data=f"pdf:{record['verificationId']}")
        ]])

    await update.message.reply_html(message, reply_markup=markup)
    await update.message.reply_text("Type /start or use the menu to calculate again.", reply_markup=MAIN_MENU)


def format_verification(record: dict) -> str:
    lines = [
        "✅ <b>Valid result</b>\n",
        f"Student: {html.escape(student_name(record))}",
        f"Type: {record.get('type', 'GPA')}",
        f"{record.get('type', 'GPA')}: <b>{record.get('gpa')}</b> ({record.get('grade', '?')})",
        f"Date: {format_date(record.get('timestamp', ''))}",
    ]
    if record.get('program'):
        lines.append(f"Program: {record.get('year')} {record.get('semester')} ({record['program']})")
    return "\n".join(lines)


async def _verify(update, context, verification_id: str) -> None:
    verification_id = verification_id.strip().upper()
    try:
        record = await context.bot_data['storage'].query_by_verification_id(verification_id)
    except Exception:
        logger.exception("Verification lookup failed for %s", verification_id)
        await update.message.reply_text(SORRY, reply_markup=MAIN_MENU)
        return

    if record is None:
        await update.message.reply_html(
            f"❌ No result found for <code>{html.escape(verification_id)}</code>.", reply_markup=MAIN_MENU
        )
        return
    await update.message.reply_html(format_verification(record), reply_markup=MAIN_MENU)


# --- Inline buttons ---

async def report_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()
    verification_id = query.data.split(':', 1)[1]

    try:
        record = await context.bot_data['storage'].query_by_verification_id(verification_id)
    except Exception:
        logger.exception("Report lookup failed for %s", verification_id)
        await query.message.reply_text(SORRY)
        return

    settings = context.bot_data['settings']
    if record is None or (record.get('userId') != query.from_user.id and not settings.is_admin(query.from_user.id)):
        await query.message.reply_text("❌ Report not found.")
        return

    try:
        pdf = await asyncio.to_thread(render_report, record)
        await query.message.reply_document(
            document=pdf, filename=f"{verification_id}.pdf", caption=f"📄 {record.get('type', 'GPA')} report"
        )
    except Exception:
        logger.exception("Could not build or send report %s", verification_id)
        await query.message.reply_text("😔 Sorry, the PDF report could not be generated.")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Exception while handling an update", exc_info=context.error)
