from aiortc import MediaStreamTrack


class MuteableAudioTrack(MediaStreamTrack):
    """
    Outgoing audio that can be silenced in place.

    While muted, frames keep flowing with zeroed samples so the remote side
    never needs a renegotiation.
    """

    kind = "audio"

    def __init__(self, source: MediaStreamTrack, muted: bool = False):
        super().__init__()
        self.source = source
        self.muted = muted

    async def recv(self):
        frame = await self.source.recv()
        if self.muted:
            for plane in frame.planes:
                plane.update(bytes(plane.buffer_size))
        return frame

    def stop(self):
        super().stop()
        self.source.stop()
