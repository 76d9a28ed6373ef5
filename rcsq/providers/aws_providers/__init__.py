from .face_detection_provider import RekognitionFaceDetectionProvider

__all__ = [
    'RekognitionFaceDetectionProvider',
]
