from rest_framework.routers import DefaultRouter
from .views import CourseViewSet, ExamViewSet, QuestionViewSet, AttachmentViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r'courses', CourseViewSet, basename='courses')
router.register(r'tests', ExamViewSet, basename='tests')
router.register(r'questions', QuestionViewSet, basename='questions')
router.register(r'attachments', AttachmentViewSet, basename='attachments')

urlpatterns = router.urls
