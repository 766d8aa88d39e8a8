from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler


class Scheduler:
    def __init__(self, sched=None):
        # AsyncIOScheduler binds to the running loop, so start() is deferred to host startup
        self.sched = sched or AsyncIOScheduler()

    def start(self):
        if not self.sched.running:
            self.sched.start()

    def shutdown(self):
        if self.sched.running:
            self.sched.shutdown(wait=False)

    def every(self, seconds: float, func, job_id: str = None, **kwargs):
        return self.sched.add_job(func, 'interval', seconds=seconds, id=job_id, kwargs=kwargs,
                                  replace_existing=job_id is not None, coalesce=True)

    def cancel(self, job) -> None:
        try:
            job.remove()
        except JobLookupError:
            pass
