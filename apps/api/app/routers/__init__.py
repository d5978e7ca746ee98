from .routes_tonights_pick import router as tonights_pick_router

all_routers = [
    tonights_pick_router,
]
