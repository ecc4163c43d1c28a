from aiogram import Router

from giftdraw.bot.handlers import admin, organizer, participant, start

router = Router()
router.include_router(admin.router)
router.include_router(start.router)
router.include_router(organizer.router)
router.include_router(participant.router)
