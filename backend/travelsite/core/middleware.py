from asgiref.sync import iscoroutinefunction, markcoroutinefunction
from django.shortcuts import redirect

from .gate import RequestGate


class SetupGateMiddleware:
    async_capable = True
    sync_capable = False

    def __init__(self, get_response):
        self.get_response = get_response
        self.gate = RequestGate.from_settings()
        if iscoroutinefunction(self.get_response):
            markcoroutinefunction(self)

    async def __call__(self, request):
        decision = await self.gate.evaluate(request.path)
        if not decision.passes:
            return redirect(decision.redirect_to)
        return await self.get_response(request)
