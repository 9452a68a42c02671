class InvalidJobTransition(Exception):
    """Raised when a job store operation targets a job that is already terminal."""

    def __init__(self, job_id: str, target_status: str):
        self.job_id = job_id
        self.target_status = target_status
        super().__init__(f"Job {job_id} is terminal and cannot move to {target_status}")
