"""Telegram bot handlers (aiogram 3).

Commands: /start, /help, /chart, /clear, /delete. Any other text message is
treated as measurements.
"""

import asyncio
from datetime import datetime

from aiogram import Bot, Dispatcher, F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand, Message

from logging_config import get_logger
from services import bot_service
from services.measurement_store import DataPoint

router = Router()
logger = get_logger()

BOT_COMMANDS = [
    BotCommand(command="chart", description="Get your personal chart URL"),
    BotCommand(command="clear", description="Clear all your stored data"),
    BotCommand(command="delete", description="Delete a recent data point"),
    BotCommand(command="help", description="Show usage help"),
]


class DeleteFlow(StatesGroup):
    choosing = State()


def _serialize_points(points: list[DataPoint]) -> list[dict]:
    return [
        {"key": p.key, "value": p.value, "timestamp": p.timestamp.isoformat()}
        for p in points
    ]


def _deserialize_points(raw: list[dict]) -> list[DataPoint]:
    return [
        DataPoint(key=p["key"], value=p["value"], timestamp=datetime.fromisoformat(p["timestamp"]))
        for p in raw
    ]


@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext):
    await state.clear()
    await message.answer(bot_service.WELCOME_TEXT)


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(bot_service.HELP_TEXT)


@router.message(Command("chart"))
async def cmd_chart(message: Message):
    reply = await asyncio.to_thread(bot_service.handle_chart_command, message.from_user.id)
    await message.answer(reply)


@router.message(Command("clear"))
async def cmd_clear(message: Message, state: FSMContext):
    await state.clear()
    reply = await asyncio.to_thread(bot_service.handle_clear_command, message.from_user.id)
    await message.answer(reply)


@router.message(Command("delete"))
async def cmd_delete(message: Message, state: FSMContext):
    text, points = await asyncio.to_thread(bot_service.build_delete_listing, message.from_user.id)
    await message.answer(text)
    if points:
        await state.set_state(DeleteFlow.choosing)
        await state.update_data(points=_serialize_points(points))


@router.message(DeleteFlow.choosing, F.text)
async def delete_choice(message: Message, state: FSMContext):
    data = await state.get_data()
    points = _deserialize_points(data.get("points", []))
    reply, finished = await asyncio.to_thread(
        bot_service.handle_delete_choice, message.from_user.id, message.text, points
    )
    if finished:
        await state.clear()
    await message.answer(reply)


@router.message(F.text & ~F.text.startswith("/"))
async def measurement_message(message: Message):
    user_id = message.from_user.id
    logger.debug("Received measurement message", extra={"user_id": user_id})
    reply = await asyncio.to_thread(bot_service.handle_measurement_message, user_id, message.text)
    await message.answer(reply)


def create_dispatcher() -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())
    dp.include_router(router)
    return dp


async def run_bot(token: str) -> None:
    """Poll Telegram until cancelled.

    Failures (bad token, network errors) are logged here and end polling;
    they never propagate into the HTTP server.
    """
    bot = Bot(token=token)
    try:
        dp = create_dispatcher()
        await bot.set_my_commands(BOT_COMMANDS)
        logger.info("Telegram bot polling started")
        await dp.start_polling(bot, handle_signals=False)
    except Exception as e:
        logger.error(
            f"Telegram bot stopped after an error: {e}",
            exc_info=True,
            extra={"error_type": type(e).__name__}
        )
    finally:
        await bot.session.close()
        logger.info("Telegram bot stopped")
