import unittest

from timeline_engines.audio_render.planner import build_audio_graph, delay_ms, pan_gains
from timeline_engines.automation.models import Automation
from timeline_engines.effect_graph.compiler import compile_graph
from timeline_engines.video_timeline.models import AudioClip, ImageClip, Media, VideoClip, order_clips


def _audio(media_id="a1", duration=3.0, **kwargs):
    media = Media(id=media_id, kind="audio", source_uri=f"/audio/{media_id}.mp3", duration=duration)
    return AudioClip(media=media, **kwargs)


def _compile(clips):
    ordered = order_clips(clips)
    inputs = {}
    for clip in ordered:
        inputs.setdefault(clip.media.id, len(inputs) + 1)
    return compile_graph(build_audio_graph(ordered, inputs))


class TestAudioGraph(unittest.TestCase):
    def test_pan_extremes_resolve_to_single_channel(self):
        self.assertEqual(pan_gains(-1.0), (1.0, 0.0))
        self.assertEqual(pan_gains(1.0), (0.0, 1.0))
        self.assertEqual(pan_gains(0.0), (1.0, 1.0))
        self.assertEqual(pan_gains(0.25), (0.75, 1.0))

    def test_two_panned_clips(self):
        text = _compile([_audio("left", pan=-1.0), _audio("right", pan=1.0, offset=2.0)])
        self.assertIn("pan=stereo|c0=1*c0|c1=0*c1[1a]", text)
        self.assertIn("pan=stereo|c0=0*c0|c1=1*c1[2a]", text)
        self.assertIn("adelay=2000|2000", text)
        self.assertTrue(text.endswith("[0:a][1a][2a]amix=inputs=3:duration=first[aout]"))

    def test_full_chain_for_static_volume(self):
        text = _compile([_audio(offset=1.5, trim_start=0.5, volume=Automation.constant(0.8))])
        self.assertEqual(
            text.split(";\n"),
            [
                "[1:a]asplit=1[a_split1]",
                "[a_split1]atrim=start=0.5:end=3,asetpts=PTS-STARTPTS,adelay=1500|1500,volume=0.8,"
                "pan=stereo|c0=1*c0|c1=1*c1[1a]",
                "[0:a][1a]amix=inputs=2:duration=first[aout]",
            ],
        )

    def test_keyframed_volume_has_gated_segments_and_holds(self):
        volume = Automation(duration=2.0, curves=[(0, 0.0), (0.5, 1.0), (1, 0.5)])
        text = _compile([_audio(duration=5.0, offset=1.0, volume=volume)])
        self.assertIn("volume=volume=0:enable='lt(t,1)'", text)
        self.assertIn("volume=volume='0+((1-0)*(t-1)/(2-1))':eval=frame:enable='gte(t,1)*lt(t,2)'", text)
        self.assertIn("volume=volume='1+((0.5-1)*(t-2)/(3-2))':eval=frame:enable='between(t,2,3)'", text)
        self.assertIn("volume=volume=0.5:enable='gt(t,3)'", text)

    def test_negative_offset_clamps_delay(self):
        self.assertEqual(delay_ms(-3.0), 0)
        self.assertEqual(delay_ms(1.2345), 1234)
        text = _compile([_audio(offset=-2.0)])
        self.assertIn("adelay=0|0", text)

    def test_empty_timeline_mixes_base_track_only(self):
        self.assertEqual(_compile([]), "[0:a]amix=inputs=1:duration=first[aout]")

    def test_images_and_silent_video_are_skipped(self):
        image = ImageClip(media=Media(id="img", kind="image", source_uri="/i.png", duration=4))
        silent = VideoClip(media=Media(id="mute", kind="video", source_uri="/v.mp4", duration=4, has_audio=False))
        voiced = VideoClip(media=Media(id="vox", kind="video", source_uri="/w.mp4", duration=4), z_index=1)
        text = _compile([image, silent, voiced])
        self.assertNotIn("img", text)
        self.assertEqual(text.count("asplit"), 1)
        self.assertIn("[3:a]asplit=1[a_split3]", text)
        self.assertTrue(text.endswith("[0:a][3a]amix=inputs=2:duration=first[aout]"))

    def test_shared_audio_media_is_split_once(self):
        media = Media(id="loop", kind="audio", source_uri="/l.mp3", duration=2)
        text = _compile([AudioClip(media=media), AudioClip(media=media, offset=2)])
        self.assertIn("[1:a]asplit=2[a_split1][a_split2]", text)
